"""Health check endpoint."""

from fastapi import APIRouter, Depends
import platform
import sys

from pagebrief.api.deps import get_orchestrator, get_providers, get_settings
from pagebrief.config import Settings
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.providers.registry import ProviderRegistry

router = APIRouter()


@router.get("/health")
async def health_check(
    settings: Settings = Depends(get_settings),
    providers: ProviderRegistry = Depends(get_providers),
    orchestrator: JobOrchestrator = Depends(get_orchestrator),
):
    """Service health, provider availability and system info."""
    return {
        "status": "healthy",
        "store_backend": settings.store_backend,
        "provider_mode": settings.provider_mode,
        "providers": await providers.availability(),
        "active_runs": orchestrator.active_runs,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
