from fastapi import APIRouter, Depends, HTTPException, Query, status

from skillboard.core.auth import Principal
from skillboard.core.config import Settings, get_settings
from skillboard.core.security import get_human_principal
from skillboard.schemas.jobs import JobSummaryOut
from skillboard.schemas.skills import SkillSetOut, SkillSetRequest
from skillboard.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


def _require_candidate(principal: Principal, scope: str) -> int:
    try:
        principal.require_scopes({scope})
        return principal.require_candidate()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.get("/me/skills", response_model=SkillSetOut)
async def get_my_skills(
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> SkillSetOut:
    candidate_id = _require_candidate(principal, "profile:write")
    try:
        skills = await repository.get_candidate_skills(candidate_id=candidate_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SkillSetOut(skills=skills)


@router.put("/me/skills", response_model=SkillSetOut)
async def replace_my_skills(
    payload: SkillSetRequest,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> SkillSetOut:
    candidate_id = _require_candidate(principal, "profile:write")
    try:
        await repository.replace_skills(entity_id=candidate_id, kind="candidate", names=payload.skills)
        skills = await repository.get_candidate_skills(candidate_id=candidate_id)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SkillSetOut(skills=skills)


@router.get("/me/recommendations", response_model=list[JobSummaryOut])
async def get_my_recommendations(
    limit: int | None = Query(default=None, ge=1),
    principal: Principal = Depends(get_human_principal),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> list[JobSummaryOut]:
    candidate_id = _require_candidate(principal, "jobs:read")
    page_limit = min(limit or settings.recommendations_page_size, settings.listing_max_page_size)
    try:
        rows = await repository.get_matched_jobs(candidate_id=candidate_id, limit=page_limit)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobSummaryOut(**row) for row in rows]
