from fastapi import APIRouter, Depends, HTTPException, Query, status

from skillboard.core.config import Settings, get_settings
from skillboard.schemas.skills import CategoryOut, SkillOut
from skillboard.services.repository import RepositoryUnavailableError, get_repository

router = APIRouter()


@router.get("/skills", response_model=list[SkillOut])
async def search_skills(
    search: str | None = Query(default=None, min_length=1, max_length=100),
    limit: int | None = Query(default=None, ge=1, le=100),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> list[SkillOut]:
    try:
        rows = await repository.search_skills(query=search, limit=limit or settings.skill_search_limit)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [SkillOut(**row) for row in rows]


@router.get("/categories", response_model=list[CategoryOut])
async def list_categories(repository=Depends(get_repository)) -> list[CategoryOut]:
    try:
        rows = await repository.list_categories()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [CategoryOut(**row) for row in rows]
