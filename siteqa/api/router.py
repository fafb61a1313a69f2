from fastapi import APIRouter

from siteqa.api.routes import health, jobs, links, pages, runs

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(links.router, tags=["links"])
api_router.include_router(runs.router, tags=["runs"])
api_router.include_router(jobs.router, tags=["jobs"])
api_router.include_router(pages.router, tags=["pages"])
