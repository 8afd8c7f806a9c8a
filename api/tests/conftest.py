from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient

import skillboard.core.security as security
from skillboard.core.config import get_settings
from skillboard.main import app
from skillboard.services.listing import JobListingFilters
from skillboard.services.matching import rank_by_match
from skillboard.services.repository import (
    RepositoryDuplicateApplicationError,
    RepositoryNotApplicableError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)
from skillboard.services.skills import plan_skill_set, skill_key

MAINTENANCE_KEY = "local-maintenance-key"


class FakeJobBoardRepository:
    """In-memory stand-in that mirrors the repository contract used by the routers."""

    def __init__(self) -> None:
        now = datetime.now(timezone.utc)
        self.now = now
        self.unavailable = False
        self.skills: dict[str, int] = {}
        self.skill_names: dict[int, str] = {}
        self.candidate_skills: dict[int, set[int]] = {7: set()}
        self.job_skills: dict[int, dict[int, bool]] = {}
        self.applications: dict[tuple[int, int], int] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.jobs: dict[int, dict[str, Any]] = {}
        self._next_job_id = 1
        self._next_application_id = 1

        self._seed_job(title="Frontend Engineer", posted_at=now - timedelta(days=3), skills=["React", "SQL", "Docker"])
        self._seed_job(title="React Developer", posted_at=now - timedelta(days=2), skills=["React"])
        self._seed_job(title="Office Manager", posted_at=now - timedelta(days=1), skills=[])
        self._seed_job(
            title="Expired Role",
            posted_at=now - timedelta(days=40),
            skills=["React"],
            expires_at=now - timedelta(days=1),
        )
        self.candidate_skills[7] = {self._skill_id("react"), self._skill_id("sql")}

    # helpers

    def _skill_id(self, name: str) -> int:
        key = skill_key(name)
        if key not in self.skills:
            skill_id = len(self.skills) + 1
            self.skills[key] = skill_id
            self.skill_names[skill_id] = name
        return self.skills[key]

    def _seed_job(
        self,
        *,
        title: str,
        posted_at: datetime,
        skills: list[str],
        expires_at: datetime | None = None,
        company_id: int = 3,
    ) -> int:
        job_id = self._next_job_id
        self._next_job_id += 1
        self.jobs[job_id] = {
            "id": job_id,
            "title": title,
            "location": "Remote",
            "job_type": "full_time",
            "experience_level": "mid",
            "remote": True,
            "salary_min": None,
            "salary_max": None,
            "salary_currency": "USD",
            "category_id": None,
            "company_id": company_id,
            "company_name": "Example Co",
            "company_logo": None,
            "posted_at": posted_at,
            "expires_at": expires_at,
            "application_count": 0,
            "is_active": True,
            "description": f"{title} description",
            "requirements": None,
            "responsibilities": None,
            "updated_at": posted_at,
        }
        self.job_skills[job_id] = {self._skill_id(name): True for name in skills}
        return job_id

    def _check_available(self) -> None:
        if self.unavailable:
            raise RepositoryUnavailableError("storage unavailable")

    def _is_open(self, job: dict[str, Any]) -> bool:
        return job["is_active"] and (job["expires_at"] is None or job["expires_at"] > datetime.now(timezone.utc))

    def _summary(self, job: dict[str, Any], viewer_candidate_id: int | None) -> dict[str, Any]:
        keys = (
            "id",
            "title",
            "location",
            "job_type",
            "experience_level",
            "remote",
            "salary_min",
            "salary_max",
            "salary_currency",
            "category_id",
            "company_id",
            "company_name",
            "company_logo",
            "posted_at",
            "expires_at",
            "application_count",
        )
        summary = {key: job[key] for key in keys}
        summary["has_applied"] = (
            viewer_candidate_id is not None and (viewer_candidate_id, job["id"]) in self.applications
        )
        return summary

    def _detail(self, job_id: int) -> dict[str, Any]:
        job = self.jobs[job_id]
        detail = self._summary(job, None)
        detail.update(
            {
                "description": job["description"],
                "requirements": job["requirements"],
                "responsibilities": job["responsibilities"],
                "is_active": job["is_active"],
                "is_open": self._is_open(job),
                "updated_at": job["updated_at"],
                "required_skills": sorted(
                    self.skill_names[sid] for sid, required in self.job_skills[job_id].items() if required
                ),
                "nice_to_have_skills": sorted(
                    self.skill_names[sid] for sid, required in self.job_skills[job_id].items() if not required
                ),
            }
        )
        return detail

    # repository contract

    async def ping(self) -> None:
        self._check_available()

    async def search_skills(self, *, query: str | None, limit: int) -> list[dict[str, Any]]:
        self._check_available()
        rows = [
            {"id": skill_id, "name": name}
            for skill_id, name in sorted(self.skill_names.items(), key=lambda item: item[1].lower())
            if not query or query.lower() in name.lower()
        ]
        return rows[:limit]

    async def list_categories(self) -> list[dict[str, Any]]:
        self._check_available()
        return [{"id": 1, "name": "Software Development", "description": None}]

    async def list_jobs(
        self,
        *,
        filters: JobListingFilters,
        sort: str,
        viewer_candidate_id: int | None,
        limit: int,
        offset: int,
    ) -> list[dict[str, Any]]:
        self.calls.append(
            ("list_jobs", {"filters": filters, "sort": sort, "viewer": viewer_candidate_id, "limit": limit})
        )
        self._check_available()
        visible = [job for job in self.jobs.values() if self._is_open(job)]
        if filters.category_id is not None:
            visible = [job for job in visible if job["category_id"] == filters.category_id]
        if filters.search:
            needle = filters.search.lower()
            visible = [
                job
                for job in visible
                if needle in job["title"].lower()
                or needle in job["description"].lower()
                or needle in (job["location"] or "").lower()
            ]

        if sort == "match" and viewer_candidate_id is not None:
            rows = []
            for job in visible:
                summary = self._summary(job, viewer_candidate_id)
                summary["required_skill_ids"] = [sid for sid, req in self.job_skills[job["id"]].items() if req]
                rows.append(summary)
            ranked = rank_by_match(rows, self.candidate_skills.get(viewer_candidate_id, set()))
            page = []
            for summary, match in ranked[offset : offset + limit]:
                summary.pop("required_skill_ids")
                summary["match_percentage"] = round(match.match_percentage, 1)
                summary["matching_skill_count"] = match.matching_skill_count
                summary["total_skill_count"] = match.total_required_skill_count
                page.append(summary)
            return page

        visible.sort(key=lambda job: job["posted_at"], reverse=True)
        return [self._summary(job, viewer_candidate_id) for job in visible[offset : offset + limit]]

    async def get_matched_jobs(self, *, candidate_id: int, limit: int) -> list[dict[str, Any]]:
        return await self.list_jobs(
            filters=JobListingFilters(),
            sort="match",
            viewer_candidate_id=candidate_id,
            limit=limit,
            offset=0,
        )

    async def get_job(self, job_id: int, *, viewer_candidate_id: int | None = None) -> dict[str, Any]:
        self._check_available()
        if job_id not in self.jobs:
            raise RepositoryNotFoundError("job not found")
        detail = self._detail(job_id)
        detail["has_applied"] = viewer_candidate_id is not None and (viewer_candidate_id, job_id) in self.applications
        return detail

    async def list_company_jobs(self, *, company_id: int) -> list[dict[str, Any]]:
        self._check_available()
        rows = []
        for job in sorted(self.jobs.values(), key=lambda item: item["posted_at"], reverse=True):
            if job["company_id"] != company_id:
                continue
            summary = self._summary(job, None)
            summary["is_active"] = job["is_active"]
            summary["is_open"] = self._is_open(job)
            rows.append(summary)
        return rows

    async def replace_skills(
        self,
        *,
        entity_id: int,
        kind: str,
        names: list[str],
        optional_names: list[str] | None = None,
    ) -> list[str]:
        self._check_available()
        plan = plan_skill_set(names, optional_names or ())
        if kind == "candidate":
            if entity_id not in self.candidate_skills:
                raise RepositoryNotFoundError("candidate not found")
            self.candidate_skills[entity_id] = {self._skill_id(name) for name in plan.required}
        else:
            if entity_id not in self.jobs:
                raise RepositoryNotFoundError("job not found")
            mapping = {self._skill_id(name): True for name in plan.required}
            mapping.update({self._skill_id(name): False for name in plan.optional})
            self.job_skills[entity_id] = mapping
        return plan.all_names

    async def get_candidate_skills(self, *, candidate_id: int) -> list[str]:
        self._check_available()
        if candidate_id not in self.candidate_skills:
            raise RepositoryNotFoundError("candidate not found")
        return sorted((self.skill_names[sid] for sid in self.candidate_skills[candidate_id]), key=str.lower)

    async def create_job(self, *, company_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        self._check_available()
        if (
            payload.get("salary_min") is not None
            and payload.get("salary_max") is not None
            and payload["salary_min"] > payload["salary_max"]
        ):
            raise RepositoryValidationError("salary_min cannot be greater than salary_max")
        job_id = self._seed_job(
            title=payload["title"],
            posted_at=datetime.now(timezone.utc),
            skills=[],
            expires_at=datetime.now(timezone.utc) + timedelta(days=30),
            company_id=company_id,
        )
        await self.replace_skills(
            entity_id=job_id,
            kind="job",
            names=payload.get("skills") or [],
            optional_names=payload.get("nice_to_have_skills") or [],
        )
        return self._detail(job_id)

    def _owned_job(self, company_id: int, job_id: int) -> dict[str, Any]:
        job = self.jobs.get(job_id)
        if job is None or job["company_id"] != company_id:
            raise RepositoryNotFoundError("job not found")
        return job

    async def update_job(self, *, company_id: int, job_id: int, payload: dict[str, Any]) -> dict[str, Any]:
        self._check_available()
        job = self._owned_job(company_id, job_id)
        self.calls.append(("update_job", {"payload": payload}))
        for key in ("title", "description", "location", "job_type"):
            if key in payload:
                job[key] = payload[key]
        required_names = payload.get("skills")
        optional_names = payload.get("nice_to_have_skills")
        if required_names is not None or optional_names is not None:
            current = self._detail(job_id)
            await self.replace_skills(
                entity_id=job_id,
                kind="job",
                names=required_names if required_names is not None else current["required_skills"],
                optional_names=optional_names if optional_names is not None else current["nice_to_have_skills"],
            )
        return self._detail(job_id)

    async def close_job(self, *, company_id: int, job_id: int) -> dict[str, Any]:
        self._check_available()
        self._owned_job(company_id, job_id)["is_active"] = False
        return self._detail(job_id)

    async def reactivate_job(self, *, company_id: int, job_id: int, days_active: int) -> dict[str, Any]:
        self._check_available()
        if days_active > 365:
            raise RepositoryValidationError("days_active must be between 1 and 365")
        job = self._owned_job(company_id, job_id)
        job["is_active"] = True
        job["expires_at"] = datetime.now(timezone.utc) + timedelta(days=days_active)
        return self._detail(job_id)

    async def apply_to_job(self, *, candidate_id: int, job_id: int) -> int:
        self._check_available()
        job = self.jobs.get(job_id)
        if job is None or not self._is_open(job):
            raise RepositoryNotApplicableError("job is not open for applications")
        if (candidate_id, job_id) in self.applications:
            raise RepositoryDuplicateApplicationError("candidate has already applied to this job")
        application_id = self._next_application_id
        self._next_application_id += 1
        self.applications[(candidate_id, job_id)] = application_id
        job["application_count"] += 1
        return application_id

    async def withdraw_application(self, *, candidate_id: int, job_id: int) -> None:
        self._check_available()
        if self.applications.pop((candidate_id, job_id), None) is None:
            raise RepositoryNotFoundError("application not found")
        self.jobs[job_id]["application_count"] -= 1

    async def reap_expired_jobs(self) -> int:
        self._check_available()
        now = datetime.now(timezone.utc)
        reaped = 0
        for job in self.jobs.values():
            if job["is_active"] and job["expires_at"] is not None and job["expires_at"] < now:
                job["is_active"] = False
                reaped += 1
        return reaped


@pytest.fixture
def fake_repo() -> FakeJobBoardRepository:
    return FakeJobBoardRepository()


@pytest.fixture
def client(fake_repo: FakeJobBoardRepository, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    monkeypatch.setenv("SB_SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SB_SUPABASE_ANON_KEY", "anon-key")
    monkeypatch.setenv("SB_MAINTENANCE_API_KEY_HASH", hashlib.sha256(MAINTENANCE_KEY.encode("utf-8")).hexdigest())
    get_settings.cache_clear()
    app.dependency_overrides[get_repository] = lambda: fake_repo

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    get_settings.cache_clear()


@pytest.fixture
def login_as(monkeypatch: pytest.MonkeyPatch) -> Callable[[str], dict[str, str]]:
    """Route bearer verification to a canned Supabase user and return auth headers."""

    def _login(role: str) -> dict[str, str]:
        user = SUPABASE_USERS[role]

        async def _fake_fetch(**_: Any) -> dict[str, Any]:
            return user

        monkeypatch.setattr(security, "_fetch_supabase_user", _fake_fetch)
        return {"Authorization": "Bearer token"}

    return _login


SUPABASE_USERS: dict[str, dict[str, Any]] = {
    "job_seeker": {"id": "seeker-1", "app_metadata": {"role": "job_seeker", "candidate_id": 7}},
    "company": {"id": "company-1", "app_metadata": {"role": "company", "company_id": 3}},
    "other_company": {"id": "company-2", "app_metadata": {"role": "company", "company_id": 99}},
    "seeker_without_profile": {"id": "seeker-2", "app_metadata": {"role": "job_seeker"}},
}
