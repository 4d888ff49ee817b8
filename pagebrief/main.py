"""pagebrief - background summarize / detect / translate orchestrator (FastAPI)."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pagebrief.config import Settings, settings as default_settings
from pagebrief.api.v1.router import v1_router
from pagebrief.api.v1.health import router as health_root_router
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.jobs.pipeline import TranslationChain
from pagebrief.providers.registry import ProviderRegistry
from pagebrief.storage.state_store import InMemoryStateStore, JsonFileStateStore, StateStore

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_state_store(settings: Settings) -> StateStore:
    """State store for ``settings.store_backend``."""
    if settings.store_backend == "file":
        return JsonFileStateStore(settings.store_path)
    if settings.store_backend == "supabase":
        from pagebrief.storage.supabase_store import SupabaseStateStore

        return SupabaseStateStore.from_settings(settings)
    return InMemoryStateStore()


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[StateStore] = None,
    providers: Optional[ProviderRegistry] = None,
) -> FastAPI:
    """Wire store, providers, orchestrator and translation chain into an app.

    Services are passed explicitly and stored on ``app.state``; tests inject
    their own store and fake providers.
    """
    settings = settings or default_settings
    store = store if store is not None else build_state_store(settings)
    providers = providers if providers is not None else ProviderRegistry.from_settings(settings)
    orchestrator = JobOrchestrator(store, providers, stale_after_seconds=settings.stale_job_seconds)
    chain = TranslationChain(store, orchestrator)
    chain.attach()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting pagebrief on port %s", settings.api_port)
        logger.info("Store backend: %s", settings.store_backend)
        logger.info("Provider mode: %s", settings.provider_mode)
        yield
        logger.info("Shutting down pagebrief")
        chain.detach()
        await orchestrator.stop()
        await providers.aclose()

    app = FastAPI(
        title="pagebrief",
        description="Background summarization, language detection and translation jobs with live progress",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.providers = providers
    app.state.orchestrator = orchestrator
    app.state.chain = chain

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_root_router, tags=["health"])  # GET /health at root
    app.include_router(v1_router)  # All /api/v1/* endpoints
    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    configure_logging(default_settings.log_level)
    uvicorn.run(create_app(), host="0.0.0.0", port=default_settings.api_port)


if __name__ == "__main__":
    run()
