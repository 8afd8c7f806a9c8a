from fastapi import APIRouter, Depends, HTTPException, status

from skillboard.core.auth import Principal
from skillboard.core.security import get_human_principal
from skillboard.schemas.jobs import (
    CompanyJobOut,
    JobCreateRequest,
    JobDetailOut,
    JobReactivateRequest,
    JobUpdateRequest,
)
from skillboard.services.repository import (
    RepositoryNotFoundError,
    RepositoryUnavailableError,
    RepositoryValidationError,
    get_repository,
)

router = APIRouter()


def _require_company(principal: Principal) -> int:
    try:
        principal.require_scopes({"jobs:write"})
        return principal.require_company()
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc


@router.get("/jobs", response_model=list[CompanyJobOut])
async def list_company_jobs(
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> list[CompanyJobOut]:
    company_id = _require_company(principal)
    try:
        rows = await repository.list_company_jobs(company_id=company_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return [CompanyJobOut(**row) for row in rows]


@router.post("/jobs", response_model=JobDetailOut, status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    company_id = _require_company(principal)
    try:
        row = await repository.create_job(company_id=company_id, payload=payload.model_dump())
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDetailOut(**row)


@router.patch("/jobs/{job_id}", response_model=JobDetailOut)
async def update_job(
    job_id: int,
    payload: JobUpdateRequest,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    company_id = _require_company(principal)
    try:
        row = await repository.update_job(
            company_id=company_id,
            job_id=job_id,
            payload=payload.model_dump(exclude_unset=True),
        )
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDetailOut(**row)


@router.post("/jobs/{job_id}/close", response_model=JobDetailOut)
async def close_job(
    job_id: int,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    company_id = _require_company(principal)
    try:
        row = await repository.close_job(company_id=company_id, job_id=job_id)
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDetailOut(**row)


@router.post("/jobs/{job_id}/reactivate", response_model=JobDetailOut)
async def reactivate_job(
    job_id: int,
    payload: JobReactivateRequest,
    principal: Principal = Depends(get_human_principal),
    repository=Depends(get_repository),
) -> JobDetailOut:
    company_id = _require_company(principal)
    try:
        row = await repository.reactivate_job(company_id=company_id, job_id=job_id, days_active=payload.days_active)
    except RepositoryValidationError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_CONTENT, detail=str(exc)) from exc
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except RepositoryNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return JobDetailOut(**row)
