from fastapi import APIRouter, Depends, HTTPException, status

from skillboard.core.auth import Principal
from skillboard.core.security import get_machine_principal
from skillboard.schemas.maintenance import ReapResultOut
from skillboard.services.repository import RepositoryUnavailableError, get_repository

router = APIRouter()


@router.post("/reap-expired", response_model=ReapResultOut)
async def reap_expired_jobs(
    principal: Principal = Depends(get_machine_principal),
    repository=Depends(get_repository),
) -> ReapResultOut:
    try:
        principal.require_scopes({"maintenance:write"})
    except PermissionError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc

    try:
        deactivated = await repository.reap_expired_jobs()
    except RepositoryUnavailableError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    return ReapResultOut(deactivated=deactivated)
