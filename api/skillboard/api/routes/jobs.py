from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from skillboard.core.auth import Principal
from skillboard.core.config import Settings, get_settings
from skillboard.core.security import get_human_principal, get_optional_human_principal
from skillboard.schemas.applications import ApplicationCreatedOut
from skillboard.schemas.jobs import JobDetailOut, JobSortMode, JobSummaryOut
from skillboard.services.listing import JobListingFilters, clamp_page, resolve_effective_sort
from skillboard.services.repository import (
    RepositoryDuplicateApplicationError,
    RepositoryNotApplicableError,
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    get_repository,
)

router = APIRouter()


def _viewer_candidate_id(principal: Principal | None) -> int | None:
    if principal is None or principal.role != "job_seeker":
        return None
    return principal.candidate_id


@router.get("", response_model=list[JobSummaryOut])
async def list_jobs(
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    category_id: int | None = Query(default=None, ge=1),
    search: str | None = Query(default=None, min_length=1, max_length=200),
    sort: JobSortMode = Query(default="recent"),
    principal: Principal | None = Depends(get_optional_human_principal),
    settings: Settings = Depends(get_settings),
    repository=Depends(get_repository),
) -> list[JobSummaryOut]:
    viewer_candidate_id = _viewer_candidate_id(principal)
    effective_sort = resolve_effective_sort(sort, viewer_candidate_id)
    default_limit = (
        settings.listing_match_page_size if effective_sort == "match" else settings.listing_recent_page_size
    )
    page_limit, page_offset = clamp_page(
        limit,
        offset,
        default_limit=default_limit,
        max_limit=settings.listing_max_page_size,
    )

    try:
        rows = await repository.list_jobs(
            filters=JobListingFilters(category_id=category_id, search=search),
            sort=effective_sort,
            viewer_candidate_id=viewer_candidate_id,
            limit=page_limit,
            offset=page_offset,
        )
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [JobSummaryOut(**row) for row in rows]


@router.get("/{job_id}", response_model=JobDetailOut)
async def get_job(
    job_id: int,
    principal: Principal | None = Depends(get_optional_human_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    try:
        row = await repository.get_job(job_id, viewer_candidate_id=_viewer_candidate_id(principal))
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDetailOut(**row)


@router.post("/{job_id}/applications", response_model=ApplicationCreatedOut, status_code=status.HTTP_201_CREATED)
async def apply_to_job(
    job_id: int,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> ApplicationCreatedOut:
    try:
        principal.require_scopes({"applications:write"})
        candidate_id = principal.require_candidate()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        application_id = await repository.apply_to_job(candidate_id=candidate_id, job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except (RepositoryNotApplicableError, RepositoryDuplicateApplicationError) as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return ApplicationCreatedOut(application_id=application_id, job_id=job_id)


@router.delete("/{job_id}/applications/me", status_code=status.HTTP_204_NO_CONTENT)
async def withdraw_application(
    job_id: int,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> Response:
    try:
        principal.require_scopes({"applications:write"})
        candidate_id = principal.require_candidate()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        await repository.withdraw_application(candidate_id=candidate_id, job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
