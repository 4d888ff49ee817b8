"""Request-scoped access to the services wired in by ``create_app``."""

from fastapi import HTTPException, Request

from pagebrief.config import Settings
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.providers.registry import ProviderRegistry


def get_orchestrator(request: Request) -> JobOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Job orchestrator not initialized")
    return orchestrator


def get_providers(request: Request) -> ProviderRegistry:
    providers = getattr(request.app.state, "providers", None)
    if providers is None:
        raise HTTPException(status_code=503, detail="Providers not initialized")
    return providers


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
