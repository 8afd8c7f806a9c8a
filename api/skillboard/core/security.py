import hashlib
import hmac
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from skillboard.core.auth import Principal, PrincipalType
from skillboard.core.config import Settings, get_settings

ROLE_SCOPES: dict[str, set[str]] = {
    "job_seeker": {"jobs:read", "applications:write", "profile:write"},
    "company": {"jobs:read", "jobs:write"},
    "admin": {"jobs:read", "jobs:write", "applications:write", "profile:write", "maintenance:write"},
}


async def get_machine_principal(
    settings: Settings = Depends(get_settings),
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> Principal:
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"machine auth requires {settings.api_key_header}",
        )

    if not settings.maintenance_api_key_hash:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="maintenance credentials are not configured",
        )

    key_hash = hashlib.sha256(x_api_key.encode("utf-8")).hexdigest()
    if not hmac.compare_digest(settings.maintenance_api_key_hash.strip().lower(), key_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid maintenance credentials")

    return Principal(
        principal_type=PrincipalType.MACHINE,
        subject="maintenance",
        scopes={"maintenance:write"},
    )


async def get_human_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal:
    token = _bearer_token(authorization)
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth is not configured",
        )

    user = await _fetch_supabase_user(
        supabase_url=settings.supabase_url,
        supabase_anon_key=settings.supabase_anon_key,
        token=token,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    return _principal_from_user(user)


async def get_optional_human_principal(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Principal | None:
    """Anonymous browsing is allowed; a header that is present must still verify."""
    if not authorization:
        return None
    return await get_human_principal(settings=settings, authorization=authorization)


def _bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="human auth requires bearer token")
    token = token.strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="empty bearer token")
    return token


def _principal_from_user(user: dict[str, Any]) -> Principal:
    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")

    role = _resolve_human_role(user)
    app_metadata = user.get("app_metadata")
    if not isinstance(app_metadata, dict):
        app_metadata = {}

    # Profile ids come only from server-controlled metadata.
    return Principal(
        principal_type=PrincipalType.HUMAN,
        subject=user_id,
        role=role,
        scopes=ROLE_SCOPES[role],
        candidate_id=_coerce_profile_id(app_metadata.get("candidate_id")),
        company_id=_coerce_profile_id(app_metadata.get("company_id")),
    )


async def _fetch_supabase_user(
    *,
    supabase_url: str,
    supabase_anon_key: str,
    token: str,
    timeout_seconds: float,
) -> dict[str, Any]:
    headers = {
        "Authorization": f"Bearer {token}",
        "apikey": supabase_anon_key,
    }
    url = f"{supabase_url.rstrip('/')}/auth/v1/user"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid bearer token")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Supabase auth verification failed",
        )

    return response.json()


def _resolve_human_role(user: dict[str, Any]) -> str:
    app_metadata = user.get("app_metadata")
    if isinstance(app_metadata, dict):
        role = app_metadata.get("role")
        if isinstance(role, str) and role in ROLE_SCOPES:
            return role

    user_metadata = user.get("user_metadata")
    if isinstance(user_metadata, dict):
        role = user_metadata.get("role")
        # Self-asserted metadata may never grant admin.
        if isinstance(role, str) and role in {"job_seeker", "company"}:
            return role

    return "job_seeker"


def _coerce_profile_id(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None
