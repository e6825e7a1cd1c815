from fastapi import APIRouter

from pagescope.api import health, jobs, scrape

api_router = APIRouter(prefix="/api")

api_router.include_router(scrape.router, prefix="/scrape", tags=["Scrape"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["Jobs"])
api_router.add_api_route("/health", health.health, methods=["GET"], tags=["Health"])
