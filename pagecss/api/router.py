"""API router aggregator."""

from fastapi import APIRouter

from pagecss.api.routes import critical_css, vary

api_router = APIRouter()
api_router.include_router(critical_css.router)
api_router.include_router(vary.router)
