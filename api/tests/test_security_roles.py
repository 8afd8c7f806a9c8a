from __future__ import annotations

import pytest
from fastapi import HTTPException

from skillboard.core.auth import Principal, PrincipalType
from skillboard.core.security import (
    ROLE_SCOPES,
    _bearer_token,
    _coerce_profile_id,
    _principal_from_user,
    _resolve_human_role,
)


def test_role_resolution_uses_only_app_metadata_for_admin() -> None:
    assert _resolve_human_role({"app_metadata": {"role": "admin"}}) == "admin"
    assert _resolve_human_role({"user_metadata": {"role": "admin"}}) == "job_seeker"


def test_role_resolution_accepts_self_declared_company() -> None:
    assert _resolve_human_role({"user_metadata": {"role": "company"}}) == "company"
    assert _resolve_human_role({}) == "job_seeker"


def test_profile_id_coercion() -> None:
    assert _coerce_profile_id("12") == 12
    assert _coerce_profile_id(0) is None
    assert _coerce_profile_id(True) is None
    assert _coerce_profile_id("abc") is None


def test_company_principal_cannot_claim_candidate_profile() -> None:
    principal = Principal(
        principal_type=PrincipalType.HUMAN,
        subject="company-1",
        scopes=ROLE_SCOPES["company"],
        role="company",
        candidate_id=5,
        company_id=3,
    )

    assert principal.require_company() == 3
    with pytest.raises(PermissionError):
        principal.require_candidate()
    with pytest.raises(PermissionError):
        principal.require_scopes({"applications:write"})


def test_admin_acting_for_company_needs_company_id() -> None:
    principal = Principal(
        principal_type=PrincipalType.HUMAN,
        subject="admin-1",
        scopes=ROLE_SCOPES["admin"],
        role="admin",
    )

    with pytest.raises(PermissionError, match="company profile required"):
        principal.require_company()


def test_profile_ids_ignore_self_asserted_metadata() -> None:
    principal = _principal_from_user(
        {
            "id": "seeker-9",
            "app_metadata": {"role": "job_seeker"},
            "user_metadata": {"candidate_id": 42},
        }
    )

    assert principal.role == "job_seeker"
    assert principal.candidate_id is None
    assert principal.scopes == ROLE_SCOPES["job_seeker"]


@pytest.mark.parametrize("header", [None, "", "Basic abc", "Bearer", "Bearer   "])
def test_malformed_bearer_headers_are_rejected(header: str | None) -> None:
    with pytest.raises(HTTPException) as exc_info:
        _bearer_token(header)
    assert exc_info.value.status_code == 401


def test_bearer_scheme_is_case_insensitive() -> None:
    assert _bearer_token("bearer abc.def") == "abc.def"
