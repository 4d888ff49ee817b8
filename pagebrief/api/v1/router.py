"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from pagebrief.api.v1.health import router as health_router
from pagebrief.api.v1.jobs import router as jobs_router
from pagebrief.api.v1.pages import router as pages_router
from pagebrief.api.v1.state import router as state_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(jobs_router, tags=["jobs"])
v1_router.include_router(state_router, tags=["state"])
v1_router.include_router(pages_router, tags=["pages"])
