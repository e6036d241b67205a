"""API routers for driftwatch."""

from fastapi import APIRouter

from .constellation import router as constellation_router
from .health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(constellation_router)

__all__ = ["api_router"]
