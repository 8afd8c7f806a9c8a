"""Parameterized SQL building blocks for job listings.

Everything here is pure so the optional-filter branching can be tested without
a database. Values never enter the SQL text; they are bound as ``$n`` params.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

JobSort = Literal["recent", "match"]

_LIKE_SPECIAL_CHARS = ("\\", "%", "_")


@dataclass(slots=True)
class JobListingFilters:
    category_id: int | None = None
    search: str | None = None


@dataclass(slots=True)
class QueryParams:
    values: list[Any] = field(default_factory=list)

    def bind(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


def escape_like(value: str) -> str:
    escaped = value
    for char in _LIKE_SPECIAL_CHARS:
        escaped = escaped.replace(char, f"\\{char}")
    return escaped


def open_job_conditions(alias: str = "j") -> list[str]:
    """Visibility rule for listings.

    Expiry is checked directly so an expired posting stays hidden even before
    the reaper has flipped its ``is_active`` flag.
    """
    return [
        f"{alias}.is_active = true",
        f"({alias}.expires_at is null or {alias}.expires_at > now())",
    ]


def build_listing_conditions(filters: JobListingFilters, params: QueryParams, *, alias: str = "j") -> list[str]:
    conditions = open_job_conditions(alias)

    if filters.category_id is not None:
        conditions.append(f"{alias}.category_id = {params.bind(filters.category_id)}")

    search = filters.search.strip() if isinstance(filters.search, str) else None
    if search:
        token = params.bind(f"%{escape_like(search)}%")
        conditions.append(
            f"({alias}.title ilike {token}"
            f" or {alias}.description ilike {token}"
            f" or coalesce({alias}.location, '') ilike {token})"
        )

    return conditions


def build_has_applied_sql(viewer_candidate_id: int | None, params: QueryParams, *, alias: str = "j") -> str:
    if viewer_candidate_id is None:
        return "false"
    token = params.bind(viewer_candidate_id)
    return f"exists (select 1 from applications a where a.candidate_id = {token} and a.job_id = {alias}.id)"


def resolve_effective_sort(sort: JobSort, viewer_candidate_id: int | None) -> JobSort:
    """Match ordering needs a candidate; without one the listing falls back to recency."""
    if sort == "match" and viewer_candidate_id is not None:
        return "match"
    return "recent"


def clamp_page(limit: int | None, offset: int | None, *, default_limit: int, max_limit: int) -> tuple[int, int]:
    bounded_max = max(1, max_limit)
    effective_limit = default_limit if limit is None else limit
    effective_limit = max(1, min(effective_limit, bounded_max))
    effective_offset = max(0, offset or 0)
    return effective_limit, effective_offset
