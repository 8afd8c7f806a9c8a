from fastapi import APIRouter

from skillboard.api.routes import candidates, catalog, company, health, jobs, maintenance

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(catalog.router, tags=["public"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["public"])
api_router.include_router(candidates.router, prefix="/candidates", tags=["job_seeker"])
api_router.include_router(company.router, prefix="/company", tags=["company"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
