from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Literal

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc
from opentelemetry import trace

from skillboard.core.config import get_settings
from skillboard.services.listing import (
    JobListingFilters,
    JobSort,
    QueryParams,
    build_has_applied_sql,
    build_listing_conditions,
    escape_like,
    resolve_effective_sort,
)
from skillboard.services.matching import MatchResult, rank_by_match
from skillboard.services.skills import (
    SKILL_NAME_MAX_LENGTH,
    SkillSetPlan,
    clean_skill_name,
    find_invalid_skill_names,
    plan_skill_set,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class RepositoryError(Exception):
    """Base repository error."""


class RepositoryUnavailableError(RepositoryError):
    """Raised when the database is unavailable, not configured, or fails mid-operation."""


class RepositoryNotFoundError(RepositoryError):
    """Raised when the requested entity does not exist."""


class RepositoryConflictError(RepositoryError):
    """Raised when an operation violates state transition rules."""


class RepositoryNotApplicableError(RepositoryConflictError):
    """Raised when applying to a job that is missing, closed or expired."""


class RepositoryDuplicateApplicationError(RepositoryConflictError):
    """Raised when a candidate applies to the same job twice."""


class RepositoryValidationError(RepositoryError):
    """Raised when payload validation fails before persistence."""


SkillOwnerKind = Literal["candidate", "job"]

JOB_TYPES = {"full_time", "part_time", "contract", "internship", "freelance", "temporary"}
EXPERIENCE_LEVELS = {"entry", "mid", "senior", "lead", "executive"}
JOB_TEXT_FIELDS = ("title", "description", "location")
JOB_OPTIONAL_TEXT_FIELDS = ("requirements", "responsibilities")
JOB_REQUIRED_FIELDS = ("title", "description", "location", "job_type")
JOB_UPDATABLE_COLUMNS = (
    "category_id",
    "title",
    "description",
    "requirements",
    "responsibilities",
    "location",
    "job_type",
    "experience_level",
    "salary_min",
    "salary_max",
    "salary_currency",
    "remote",
)

_SKILL_OWNERS: dict[str, tuple[str, str, str]] = {
    # kind -> (owner table, association table, owner column)
    "candidate": ("candidates", "candidate_skills", "candidate_id"),
    "job": ("jobs", "job_skills", "job_id"),
}

APPLICATION_UNIQUE_CONSTRAINT = "applications_candidate_job_key"
APPLICATION_CANDIDATE_FK = "applications_candidate_id_fkey"
JOB_CATEGORY_FK = "jobs_category_id_fkey"
JOB_COMPANY_FK = "jobs_company_id_fkey"
JOB_SALARY_RANGE_CHECK = "jobs_salary_range_check"

JOB_SUMMARY_COLUMNS = """
              j.id,
              j.title,
              j.location,
              j.job_type,
              j.experience_level,
              j.remote,
              j.salary_min,
              j.salary_max,
              j.salary_currency,
              j.category_id,
              j.company_id,
              c.name as company_name,
              c.logo_url as company_logo,
              j.posted_at,
              j.expires_at,
              j.application_count"""


class PostgresRepository:
    def __init__(
        self,
        database_url: str | None,
        min_pool_size: int,
        max_pool_size: int,
        command_timeout_seconds: float,
        job_default_active_days: int,
        job_max_active_days: int,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.command_timeout_seconds = command_timeout_seconds
        self.job_max_active_days = max(1, job_max_active_days)
        self.job_default_active_days = max(1, min(job_default_active_days, self.job_max_active_days))
        self._pool: asyncpg.Pool | None = None

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def ping(self) -> None:
        pool = await self._get_pool()
        async with self._storage_errors("ping"):
            await pool.fetchval("select 1")

    # Skill vocabulary

    async def resolve_skill(self, name: str) -> int:
        cleaned = clean_skill_name(name)
        if cleaned is None:
            raise RepositoryValidationError("skill name must be a non-empty string")
        self._validate_skill_names([cleaned])

        pool = await self._get_pool()
        async with self._storage_errors("resolve_skill"):
            async with pool.acquire() as conn:
                return await self._resolve_skill_id(conn, cleaned)

    async def search_skills(self, *, query: str | None, limit: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        params = QueryParams()
        normalized_query = self._coerce_text(query)
        where_sql = "true"
        if normalized_query:
            where_sql = f"s.name ilike {params.bind(f'%{escape_like(normalized_query)}%')}"
        limit_token = params.bind(max(1, limit))

        async with self._storage_errors("search_skills"):
            rows = await pool.fetch(
                f"""
                select s.id, s.name
                from skills s
                where {where_sql}
                order by lower(s.name) asc
                limit {limit_token}
                """,
                *params.values,
            )
        return [{"id": row["id"], "name": row["name"]} for row in rows]

    async def replace_skills(
        self,
        *,
        entity_id: int,
        kind: SkillOwnerKind,
        names: Sequence[str | None],
        optional_names: Sequence[str | None] | None = None,
    ) -> list[str]:
        """Replace the whole skill set of a candidate or a job.

        Names are resolved first, each in its own short statement, so the
        vocabulary inserts never hold locks across the replacement. The
        delete-then-insert of associations runs in one transaction: a failure
        leaves the previously committed set untouched.
        """
        if kind not in _SKILL_OWNERS:
            raise RepositoryValidationError("kind must be one of: candidate, job")
        if optional_names and kind != "job":
            raise RepositoryValidationError("only jobs carry nice-to-have skills")

        plan = plan_skill_set(names, optional_names or ())
        self._validate_skill_names(plan.all_names)

        pool = await self._get_pool()
        async with self._storage_errors("replace_skills"):
            async with pool.acquire() as conn:
                # Checked before resolving so an unknown owner never grows the vocabulary.
                await self._ensure_skill_owner(conn, kind=kind, entity_id=entity_id)
                skill_ids = await self._resolve_skill_ids(conn, plan.all_names)
                async with conn.transaction():
                    await self._lock_skill_owner(conn, kind=kind, entity_id=entity_id)
                    await self._write_skill_set(conn, kind=kind, entity_id=entity_id, plan=plan, skill_ids=skill_ids)

        logger.info(
            "skill set replaced kind=%s entity_id=%s required=%s optional=%s",
            kind,
            entity_id,
            len(plan.required),
            len(plan.optional),
        )
        return plan.all_names

    async def get_candidate_skills(self, *, candidate_id: int) -> list[str]:
        pool = await self._get_pool()
        async with self._storage_errors("get_candidate_skills"):
            async with pool.acquire() as conn:
                exists = await conn.fetchval("select exists (select 1 from candidates where id = $1)", candidate_id)
                if not exists:
                    raise RepositoryNotFoundError("candidate not found")
                rows = await conn.fetch(
                    """
                    select s.name
                    from candidate_skills cs
                    join skills s on s.id = cs.skill_id
                    where cs.candidate_id = $1
                    order by lower(s.name) asc
                    """,
                    candidate_id,
                )
        return [row["name"] for row in rows]

    async def list_categories(self) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with self._storage_errors("list_categories"):
            rows = await pool.fetch(
                """
                select id, name, description
                from categories
                order by name asc
                """
            )
        return [{"id": row["id"], "name": row["name"], "description": row["description"]} for row in rows]

    # Listings

    async def list_jobs(
        self,
        *,
        filters: JobListingFilters,
        sort: JobSort,
        viewer_candidate_id: int | None,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        effective_sort = resolve_effective_sort(sort, viewer_candidate_id)
        params = QueryParams()
        has_applied_sql = build_has_applied_sql(viewer_candidate_id, params)
        where_sql = " and ".join(build_listing_conditions(filters, params))

        pool = await self._get_pool()
        async with self._storage_errors("list_jobs"):
            async with pool.acquire() as conn:
                async with conn.transaction(readonly=True):
                    if effective_sort == "recent":
                        limit_token = params.bind(limit)
                        offset_token = params.bind(offset)
                        rows = await conn.fetch(
                            f"""
                            select {JOB_SUMMARY_COLUMNS},
                              {has_applied_sql} as has_applied
                            from jobs j
                            join companies c on c.id = j.company_id
                            where {where_sql}
                            order by j.posted_at desc, j.id desc
                            limit {limit_token}
                            offset {offset_token}
                            """,
                            *params.values,
                        )
                        return [self._job_summary_row_to_dict(row) for row in rows]

                    assert viewer_candidate_id is not None
                    candidate_skill_ids = await self._fetch_candidate_skill_ids(conn, candidate_id=viewer_candidate_id)
                    rows = await conn.fetch(
                        f"""
                        select {JOB_SUMMARY_COLUMNS},
                          {has_applied_sql} as has_applied,
                          array(
                            select js.skill_id
                            from job_skills js
                            where js.job_id = j.id
                              and js.is_required = true
                          ) as required_skill_ids
                        from jobs j
                        join companies c on c.id = j.company_id
                        where {where_sql}
                        """,
                        *params.values,
                    )

        candidates = []
        for row in rows:
            summary = self._job_summary_row_to_dict(row)
            summary["required_skill_ids"] = list(row["required_skill_ids"] or [])
            candidates.append(summary)

        with tracer.start_as_current_span("listing.rank_by_match") as span:
            span.set_attribute("listing.candidate_skill_count", len(candidate_skill_ids))
            span.set_attribute("listing.jobs_scored", len(candidates))
            ranked = rank_by_match(candidates, candidate_skill_ids)
        return [self._attach_match(summary, match) for summary, match in ranked[offset : offset + limit]]

    async def get_matched_jobs(self, *, candidate_id: int, limit: int) -> list[dict[str, Any]]:
        return await self.list_jobs(
            filters=JobListingFilters(),
            sort="match",
            viewer_candidate_id=candidate_id,
            limit=limit,
            offset=0,
        )

    async def get_job(self, job_id: int, *, viewer_candidate_id: int | None = None) -> dict[str, Any]:
        pool = await self._get_pool()
        params = QueryParams()
        job_token = params.bind(job_id)
        has_applied_sql = build_has_applied_sql(viewer_candidate_id, params)

        async with self._storage_errors("get_job"):
            async with pool.acquire() as conn:
                async with conn.transaction(readonly=True):
                    row = await conn.fetchrow(
                        f"""
                        select {JOB_SUMMARY_COLUMNS},
                          {has_applied_sql} as has_applied,
                          j.description,
                          j.requirements,
                          j.responsibilities,
                          j.is_active,
                          (j.is_active and (j.expires_at is null or j.expires_at > now())) as is_open,
                          j.updated_at
                        from jobs j
                        join companies c on c.id = j.company_id
                        where j.id = {job_token}
                        """,
                        *params.values,
                    )
                    if not row:
                        raise RepositoryNotFoundError("job not found")
                    skill_rows = await conn.fetch(
                        """
                        select s.name, js.is_required
                        from job_skills js
                        join skills s on s.id = js.skill_id
                        where js.job_id = $1
                        order by lower(s.name) asc
                        """,
                        job_id,
                    )

        detail = self._job_summary_row_to_dict(row)
        detail.update(
            {
                "description": row["description"],
                "requirements": row["requirements"],
                "responsibilities": row["responsibilities"],
                "is_active": bool(row["is_active"]),
                "is_open": bool(row["is_open"]),
                "updated_at": row["updated_at"],
                "required_skills": [item["name"] for item in skill_rows if item["is_required"]],
                "nice_to_have_skills": [item["name"] for item in skill_rows if not item["is_required"]],
            }
        )
        return detail

    async def list_company_jobs(self, *, company_id: int) -> list[dict[str, Any]]:
        pool = await self._get_pool()
        async with self._storage_errors("list_company_jobs"):
            rows = await pool.fetch(
                f"""
                select {JOB_SUMMARY_COLUMNS},
                  false as has_applied,
                  j.is_active,
                  (j.is_active and (j.expires_at is null or j.expires_at > now())) as is_open
                from jobs j
                join companies c on c.id = j.company_id
                where j.company_id = $1
                order by j.posted_at desc, j.id desc
                """,
                company_id,
            )
        result = []
        for row in rows:
            summary = self._job_summary_row_to_dict(row)
            summary["is_active"] = bool(row["is_active"])
            summary["is_open"] = bool(row["is_open"])
            result.append(summary)
        return result

    # Job postings

    async def create_job(self, *, company_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        fields = self._normalize_job_fields(payload, partial=False)
        plan = plan_skill_set(payload.get("skills") or (), payload.get("nice_to_have_skills") or ())
        self._validate_skill_names(plan.all_names)

        columns = ["company_id", *fields.keys()]
        params = QueryParams()
        value_tokens = [params.bind(company_id), *(params.bind(value) for value in fields.values())]
        days_token = params.bind(self.job_default_active_days)

        pool = await self._get_pool()
        async with self._storage_errors("create_job"):
            async with pool.acquire() as conn:
                skill_ids = await self._resolve_skill_ids(conn, plan.all_names)
                try:
                    async with conn.transaction():
                        job_id = await conn.fetchval(
                            f"""
                            insert into jobs ({", ".join(columns)}, expires_at)
                            values ({", ".join(value_tokens)}, now() + make_interval(days => {days_token}))
                            returning id
                            """,
                            *params.values,
                        )
                        await self._write_skill_set(conn, kind="job", entity_id=job_id, plan=plan, skill_ids=skill_ids)
                except pg_exc.ForeignKeyViolationError as exc:
                    if exc.constraint_name == JOB_CATEGORY_FK:
                        raise RepositoryValidationError("category not found") from exc
                    if exc.constraint_name == JOB_COMPANY_FK:
                        raise RepositoryNotFoundError("company not found") from exc
                    raise
                except pg_exc.CheckViolationError as exc:
                    raise RepositoryValidationError(self._describe_check_violation(exc)) from exc

        logger.info("job created id=%s company_id=%s skills=%s", job_id, company_id, len(plan.all_names))
        return await self.get_job(job_id)

    async def update_job(self, *, company_id: int, job_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update to a job owned by ``company_id``.

        Each skill group is replaced only when it is supplied: an absent or
        null ``skills`` keeps the current required skills, and likewise for
        ``nice_to_have_skills``. An empty list clears that group.
        """
        fields = self._normalize_job_fields(payload, partial=True)
        required_names = payload.get("skills")
        optional_names = payload.get("nice_to_have_skills")
        replace_skill_set = required_names is not None or optional_names is not None
        supplied = plan_skill_set(required_names or (), optional_names or ())
        self._validate_skill_names(supplied.all_names)

        pool = await self._get_pool()
        async with self._storage_errors("update_job"):
            async with pool.acquire() as conn:
                supplied_ids = await self._resolve_skill_ids(conn, supplied.all_names) if replace_skill_set else {}
                try:
                    async with conn.transaction():
                        await self._lock_company_job(conn, company_id=company_id, job_id=job_id)
                        if fields:
                            params = QueryParams()
                            job_token = params.bind(job_id)
                            assignments = [f"{column} = {params.bind(value)}" for column, value in fields.items()]
                            await conn.execute(
                                f"""
                                update jobs
                                set {", ".join(assignments)}, updated_at = now()
                                where id = {job_token}
                                """,
                                *params.values,
                            )
                        if replace_skill_set:
                            current_rows = await self._fetch_job_skill_rows(conn, job_id=job_id)
                            plan = plan_skill_set(
                                required_names
                                if required_names is not None
                                else [row["name"] for row in current_rows if row["is_required"]],
                                optional_names
                                if optional_names is not None
                                else [row["name"] for row in current_rows if not row["is_required"]],
                            )
                            skill_ids = {row["name"]: int(row["skill_id"]) for row in current_rows}
                            skill_ids.update(supplied_ids)
                            await self._write_skill_set(
                                conn, kind="job", entity_id=job_id, plan=plan, skill_ids=skill_ids
                            )
                except pg_exc.ForeignKeyViolationError as exc:
                    if exc.constraint_name == JOB_CATEGORY_FK:
                        raise RepositoryValidationError("category not found") from exc
                    raise
                except pg_exc.CheckViolationError as exc:
                    raise RepositoryValidationError(self._describe_check_violation(exc)) from exc

        return await self.get_job(job_id)

    async def close_job(self, *, company_id: int, job_id: int) -> dict[str, Any]:
        pool = await self._get_pool()
        async with self._storage_errors("close_job"):
            updated = await pool.fetchval(
                """
                update jobs
                set is_active = false, updated_at = now()
                where id = $1
                  and company_id = $2
                returning id
                """,
                job_id,
                company_id,
            )
        if updated is None:
            raise RepositoryNotFoundError("job not found")
        logger.info("job closed id=%s company_id=%s", job_id, company_id)
        return await self.get_job(job_id)

    async def reactivate_job(self, *, company_id: int, job_id: int, days_active: int) -> dict[str, Any]:
        if days_active < 1 or days_active > self.job_max_active_days:
            raise RepositoryValidationError(f"days_active must be between 1 and {self.job_max_active_days}")

        pool = await self._get_pool()
        async with self._storage_errors("reactivate_job"):
            updated = await pool.fetchval(
                """
                update jobs
                set
                  is_active = true,
                  expires_at = now() + make_interval(days => $3),
                  updated_at = now()
                where id = $1
                  and company_id = $2
                returning id
                """,
                job_id,
                company_id,
                days_active,
            )
        if updated is None:
            raise RepositoryNotFoundError("job not found")
        logger.info("job reactivated id=%s company_id=%s days_active=%s", job_id, company_id, days_active)
        return await self.get_job(job_id)

    # Application ledger

    async def apply_to_job(self, *, candidate_id: int, job_id: int) -> int:
        """Record one application and bump the job's counter in the same transaction.

        Uniqueness of ``(candidate_id, job_id)`` is left to the table constraint,
        so two concurrent calls cannot both pass: the loser fails at insert time.
        """
        pool = await self._get_pool()
        async with self._storage_errors("apply_to_job"):
            async with pool.acquire() as conn:
                try:
                    async with conn.transaction():
                        is_open = await conn.fetchval(
                            """
                            select is_active and (expires_at is null or expires_at > now())
                            from jobs
                            where id = $1
                            """,
                            job_id,
                        )
                        if not is_open:
                            raise RepositoryNotApplicableError("job is not open for applications")

                        application_id = await conn.fetchval(
                            """
                            insert into applications (candidate_id, job_id)
                            values ($1, $2)
                            returning id
                            """,
                            candidate_id,
                            job_id,
                        )
                        await self._adjust_application_count(conn, job_id=job_id, delta=1)
                except pg_exc.UniqueViolationError as exc:
                    if exc.constraint_name != APPLICATION_UNIQUE_CONSTRAINT:
                        raise
                    raise RepositoryDuplicateApplicationError("candidate has already applied to this job") from exc
                except pg_exc.ForeignKeyViolationError as exc:
                    if exc.constraint_name == APPLICATION_CANDIDATE_FK:
                        raise RepositoryNotFoundError("candidate not found") from exc
                    raise RepositoryNotApplicableError("job is not open for applications") from exc

        logger.info("application recorded id=%s candidate_id=%s job_id=%s", application_id, candidate_id, job_id)
        return int(application_id)

    async def withdraw_application(self, *, candidate_id: int, job_id: int) -> None:
        pool = await self._get_pool()
        async with self._storage_errors("withdraw_application"):
            async with pool.acquire() as conn:
                async with conn.transaction():
                    application_id = await conn.fetchval(
                        """
                        delete from applications
                        where candidate_id = $1
                          and job_id = $2
                        returning id
                        """,
                        candidate_id,
                        job_id,
                    )
                    if application_id is None:
                        raise RepositoryNotFoundError("application not found")
                    await self._adjust_application_count(conn, job_id=job_id, delta=-1)

        logger.info("application withdrawn id=%s candidate_id=%s job_id=%s", application_id, candidate_id, job_id)

    async def _adjust_application_count(self, conn: asyncpg.Connection, *, job_id: int, delta: int) -> None:
        """Counter hook for every ledger insert/delete; must run inside the ledger's transaction."""
        updated = await conn.fetchval(
            """
            update jobs
            set application_count = application_count + $2
            where id = $1
            returning application_count
            """,
            job_id,
            delta,
        )
        if updated is None:
            raise RepositoryNotFoundError("job not found")

    # Maintenance

    async def reap_expired_jobs(self) -> int:
        pool = await self._get_pool()
        async with self._storage_errors("reap_expired_jobs"):
            rows = await pool.fetch(
                """
                update jobs
                set is_active = false, updated_at = now()
                where is_active = true
                  and expires_at < now()
                returning id
                """
            )
        if rows:
            logger.info("deactivated expired jobs count=%s", len(rows))
        return len(rows)

    # Internals

    async def _resolve_skill_ids(self, conn: asyncpg.Connection, names: Sequence[str]) -> dict[str, int]:
        return {name: await self._resolve_skill_id(conn, name) for name in names}

    async def _resolve_skill_id(self, conn: asyncpg.Connection, name: str) -> int:
        # Insert-or-fetch: a concurrent winner shows up as a conflict, never as a duplicate row.
        for _ in range(3):
            created_id = await conn.fetchval(
                """
                insert into skills (name)
                values ($1)
                on conflict ((lower(name))) do nothing
                returning id
                """,
                name,
            )
            if created_id is not None:
                logger.info("skill created id=%s name=%s", created_id, name)
                return int(created_id)

            existing_id = await conn.fetchval("select id from skills where lower(name) = lower($1)", name)
            if existing_id is not None:
                return int(existing_id)
        raise RepositoryUnavailableError("storage unavailable")

    async def _ensure_skill_owner(self, conn: asyncpg.Connection, *, kind: str, entity_id: int) -> None:
        owner_table, _, _ = _SKILL_OWNERS[kind]
        found = await conn.fetchval(f"select exists (select 1 from {owner_table} where id = $1)", entity_id)
        if not found:
            raise RepositoryNotFoundError(f"{kind} not found")

    async def _fetch_job_skill_rows(self, conn: asyncpg.Connection, *, job_id: int) -> list[asyncpg.Record]:
        return await conn.fetch(
            """
            select s.name, js.skill_id, js.is_required
            from job_skills js
            join skills s on s.id = js.skill_id
            where js.job_id = $1
            order by lower(s.name) asc
            """,
            job_id,
        )

    async def _lock_skill_owner(self, conn: asyncpg.Connection, *, kind: str, entity_id: int) -> None:
        owner_table, _, _ = _SKILL_OWNERS[kind]
        # Serializes concurrent replacements of the same owner's set.
        found = await conn.fetchval(f"select id from {owner_table} where id = $1 for no key update", entity_id)
        if found is None:
            raise RepositoryNotFoundError(f"{kind} not found")

    async def _lock_company_job(self, conn: asyncpg.Connection, *, company_id: int, job_id: int) -> None:
        found = await conn.fetchval(
            "select id from jobs where id = $1 and company_id = $2 for no key update",
            job_id,
            company_id,
        )
        if found is None:
            raise RepositoryNotFoundError("job not found")

    async def _write_skill_set(
        self,
        conn: asyncpg.Connection,
        *,
        kind: str,
        entity_id: int,
        plan: SkillSetPlan,
        skill_ids: dict[str, int],
    ) -> None:
        _, association_table, owner_column = _SKILL_OWNERS[kind]
        await conn.execute(f"delete from {association_table} where {owner_column} = $1", entity_id)

        if kind == "job":
            records = [(entity_id, skill_ids[name], True) for name in plan.required]
            records.extend((entity_id, skill_ids[name], False) for name in plan.optional)
            if records:
                await conn.executemany(
                    """
                    insert into job_skills (job_id, skill_id, is_required)
                    values ($1, $2, $3)
                    on conflict (job_id, skill_id) do nothing
                    """,
                    records,
                )
            return

        candidate_records = [(entity_id, skill_ids[name]) for name in plan.required]
        if candidate_records:
            await conn.executemany(
                """
                insert into candidate_skills (candidate_id, skill_id)
                values ($1, $2)
                on conflict (candidate_id, skill_id) do nothing
                """,
                candidate_records,
            )

    async def _fetch_candidate_skill_ids(self, conn: asyncpg.Connection, *, candidate_id: int) -> set[int]:
        rows = await conn.fetch("select skill_id from candidate_skills where candidate_id = $1", candidate_id)
        return {int(row["skill_id"]) for row in rows}

    @asynccontextmanager
    async def _storage_errors(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError) as exc:
            logger.exception("storage failure during %s", operation)
            raise RepositoryUnavailableError("storage unavailable") from exc

    async def _get_pool(self) -> asyncpg.Pool:
        if not self.database_url:
            logger.error("database is not configured; set SB_DATABASE_URL")
            raise RepositoryUnavailableError("storage unavailable")

        if self._pool is not None:
            return self._pool

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
                command_timeout=self.command_timeout_seconds,
            )
            return self._pool
        except Exception as exc:  # pragma: no cover - depends on environment
            logger.exception("database pool creation failed")
            raise RepositoryUnavailableError("storage unavailable") from exc

    def _normalize_job_fields(self, payload: dict[str, Any], *, partial: bool) -> dict[str, Any]:
        fields: dict[str, Any] = {}

        if not partial:
            missing = [name for name in JOB_REQUIRED_FIELDS if self._coerce_text(payload.get(name)) is None]
            if missing:
                raise RepositoryValidationError(f"missing required field: {missing[0]}")

        for name in JOB_TEXT_FIELDS:
            if name not in payload:
                continue
            value = self._coerce_text(payload[name])
            if value is None:
                raise RepositoryValidationError(f"{name} must be a non-empty string")
            fields[name] = value

        for name in JOB_OPTIONAL_TEXT_FIELDS:
            if name in payload:
                fields[name] = self._coerce_text(payload[name])

        if "job_type" in payload:
            job_type = self._coerce_text(payload["job_type"])
            if job_type not in JOB_TYPES:
                raise RepositoryValidationError(f"job_type must be one of: {', '.join(sorted(JOB_TYPES))}")
            fields["job_type"] = job_type

        if payload.get("experience_level") is not None:
            level = self._coerce_text(payload["experience_level"])
            if level not in EXPERIENCE_LEVELS:
                raise RepositoryValidationError(
                    f"experience_level must be one of: {', '.join(sorted(EXPERIENCE_LEVELS))}"
                )
            fields["experience_level"] = level

        if "category_id" in payload:
            fields["category_id"] = self._coerce_positive_int(payload["category_id"], field_name="category_id")

        for name in ("salary_min", "salary_max"):
            if name in payload:
                value = payload[name]
                if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 0):
                    raise RepositoryValidationError(f"{name} must be a non-negative integer")
                fields[name] = value

        salary_min = fields.get("salary_min")
        salary_max = fields.get("salary_max")
        if salary_min is not None and salary_max is not None and salary_min > salary_max:
            raise RepositoryValidationError("salary_min cannot be greater than salary_max")

        if payload.get("salary_currency") is not None:
            currency = self._coerce_text(payload["salary_currency"])
            if currency is None or len(currency) != 3 or not currency.isalpha():
                raise RepositoryValidationError("salary_currency must be a 3-letter code")
            fields["salary_currency"] = currency.upper()

        if payload.get("remote") is not None:
            fields["remote"] = bool(payload["remote"])

        return {column: fields[column] for column in JOB_UPDATABLE_COLUMNS if column in fields}

    @staticmethod
    def _validate_skill_names(names: Sequence[str]) -> None:
        too_long = find_invalid_skill_names(names)
        if too_long:
            raise RepositoryValidationError(f"skill names must be at most {SKILL_NAME_MAX_LENGTH} characters")

    @staticmethod
    def _describe_check_violation(exc: pg_exc.CheckViolationError) -> str:
        if exc.constraint_name == JOB_SALARY_RANGE_CHECK:
            return "salary_min cannot be greater than salary_max"
        return "job fields violate a constraint"

    @staticmethod
    def _attach_match(summary: dict[str, Any], match: MatchResult) -> dict[str, Any]:
        result = {key: value for key, value in summary.items() if key != "required_skill_ids"}
        result["match_percentage"] = round(match.match_percentage, 1)
        result["matching_skill_count"] = match.matching_skill_count
        result["total_skill_count"] = match.total_required_skill_count
        return result

    @staticmethod
    def _job_summary_row_to_dict(row: asyncpg.Record) -> dict[str, Any]:
        return {
            "id": row["id"],
            "title": row["title"],
            "location": row["location"],
            "job_type": row["job_type"],
            "experience_level": row["experience_level"],
            "remote": bool(row["remote"]),
            "salary_min": row["salary_min"],
            "salary_max": row["salary_max"],
            "salary_currency": row["salary_currency"],
            "category_id": row["category_id"],
            "company_id": row["company_id"],
            "company_name": row["company_name"],
            "company_logo": row["company_logo"],
            "posted_at": row["posted_at"],
            "expires_at": row["expires_at"],
            "application_count": int(row["application_count"]),
            "has_applied": bool(row["has_applied"]),
        }

    @staticmethod
    def _coerce_text(value: Any) -> str | None:
        if value is None:
            return None
        if isinstance(value, str):
            stripped = value.strip()
            return stripped or None
        return str(value)

    @staticmethod
    def _coerce_positive_int(value: Any, *, field_name: str) -> int | None:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise RepositoryValidationError(f"{field_name} must be a positive integer")
        return value


@lru_cache
def get_repository() -> PostgresRepository:
    settings = get_settings()
    return PostgresRepository(
        database_url=settings.database_url,
        min_pool_size=settings.database_pool_min_size,
        max_pool_size=settings.database_pool_max_size,
        command_timeout_seconds=settings.database_command_timeout_seconds,
        job_default_active_days=settings.job_default_active_days,
        job_max_active_days=settings.job_max_active_days,
    )
