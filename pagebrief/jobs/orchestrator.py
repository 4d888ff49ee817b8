"""In-process job orchestrator using asyncio.

Runs at most one job per kind at a time as a background task and records
every state transition in the shared state store, which is the only thing
observers read. No external queue (Redis, Celery) needed.
"""

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
import uuid

from pydantic import BaseModel, ValidationError

from pagebrief.jobs.errors import ProviderError, ProviderErrorKind, RunSuperseded
from pagebrief.jobs.models import (
    JobAck,
    JobKind,
    JobPhase,
    JobRecord,
    JobRequest,
    field_key,
    record_patch,
)
from pagebrief.providers.base import Availability, CapabilityProvider
from pagebrief.providers.registry import ProviderRegistry
from pagebrief.storage.state_store import StateStore

logger = logging.getLogger(__name__)

SHUTDOWN_MESSAGE = "Job cancelled: service shutting down"


def _now() -> datetime:
    return datetime.now(timezone.utc)


def download_percent(loaded: float) -> int:
    """Map a loaded fraction to a whole percentage in 0..100."""
    return max(0, min(100, int(round(loaded * 100))))


def provider_config(kind: JobKind, params: BaseModel) -> Dict[str, Any]:
    config = params.model_dump(mode="json", exclude_none=True)
    if kind == JobKind.SUMMARIZE:
        config["format"] = "plain-text"
    return config


class JobOrchestrator:
    """Drives one provider call per job and commits each phase to the store."""

    def __init__(
        self,
        store: StateStore,
        providers: ProviderRegistry,
        stale_after_seconds: int = 600,
    ):
        self._store = store
        self._providers = providers
        self._stale_after = timedelta(seconds=stale_after_seconds)
        self._tasks: Dict[asyncio.Task, Tuple[JobKind, str]] = {}

    @property
    def store(self) -> StateStore:
        return self._store

    def get_status(self, kind: JobKind) -> JobRecord:
        return JobRecord.from_state(kind, self._store.read_all())

    def submit(self, request: JobRequest) -> JobAck:
        """Accept or reject ``request`` immediately and start it in the background.

        The ``initializing`` record is committed before this returns, so every
        observer sees feedback before any provider call is made.
        """
        kind = request.kind
        try:
            params = request.validated_params()
        except ValidationError as exc:
            reason = "; ".join(err["msg"] for err in exc.errors())
            return self._reject(kind, f"Invalid parameters for {kind.value}: {reason}")

        if not request.input_text.strip():
            return self._reject(kind, "Input text is empty")

        provider = self._providers.get(kind)
        if provider is None:
            return self._reject(kind, f"No provider registered for {kind.value}")

        current = self.get_status(kind)
        if current.in_flight:
            if not self._is_stale(current):
                return self._reject(kind, f"A {kind.value} job is already in progress")
            logger.warning(
                "Replacing abandoned %s run %s (last update %s)",
                kind.value, current.run_id, current.updated_at,
            )

        loop = asyncio.get_running_loop()
        run_id = str(uuid.uuid4())
        now = _now()
        self._store.merge_patch(record_patch(
            kind,
            phase=JobPhase.INITIALIZING,
            run_id=run_id,
            progress_percent=0,
            partial_result="",
            final_result=None,
            error_message=None,
            error_kind=None,
            input_echo=None,
            started_at=now,
            updated_at=now,
            completed_at=None,
        ))

        task = loop.create_task(
            self._run(request, params, provider, run_id),
            name=f"{kind.value}-{run_id}",
        )
        self._tasks[task] = (kind, run_id)
        task.add_done_callback(self._on_task_done)
        logger.info("Accepted %s job %s", kind.value, run_id)
        return JobAck(accepted=True, run_id=run_id)

    async def join(self) -> None:
        """Wait until every scheduled run, including chained ones, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    async def stop(self) -> None:
        """Cancel in-flight runs. Only used when the host process shuts down.

        Every cancelled run ends as a failed record, so a durable store is not
        left holding an in-flight job that no process is running.
        """
        runs = list(self._tasks.items())
        for task, _ in runs:
            task.cancel()
        await asyncio.gather(*(task for task, _ in runs), return_exceptions=True)
        self._tasks.clear()
        # A task cancelled before its first step never enters _run.
        for _, (kind, run_id) in runs:
            record = self.get_status(kind)
            if record.run_id == run_id and record.in_flight:
                self._fail(kind, run_id, ProviderErrorKind.INVOKE_FAILED, SHUTDOWN_MESSAGE)

    @property
    def active_runs(self) -> int:
        return len(self._tasks)

    async def _run(
        self,
        request: JobRequest,
        params: BaseModel,
        provider: CapabilityProvider,
        run_id: str,
    ) -> None:
        kind = request.kind
        handle: Optional[Any] = None
        created = False
        try:
            availability = await provider.check_availability()
            if availability == Availability.UNAVAILABLE:
                raise ProviderError(
                    ProviderErrorKind.CAPABILITY_UNAVAILABLE,
                    f"{provider.capability.value} capability unavailable",
                )

            self._commit(kind, run_id, phase=JobPhase.INITIALIZING)

            def on_download_progress(loaded: float) -> None:
                self._commit(
                    kind, run_id,
                    phase=JobPhase.DOWNLOADING_MODEL,
                    progress_percent=download_percent(loaded),
                )

            handle = await provider.create(provider_config(kind, params), on_download_progress)
            created = True

            self._commit(kind, run_id, phase=JobPhase.RUNNING)
            result = await provider.invoke(handle, request.input_text)
            if isinstance(result, str):
                output = result
                if output:
                    self._commit(kind, run_id, phase=JobPhase.RUNNING, partial_result=output)
            else:
                output = ""
                async with aclosing(result) as stream:
                    async for chunk in stream:
                        output += chunk
                        self._commit(kind, run_id, phase=JobPhase.RUNNING, partial_result=output)

            if not output.strip():
                raise ProviderError(
                    ProviderErrorKind.EMPTY_RESULT,
                    f"Could not generate a {kind.value} result: the provider returned nothing",
                )

            self._commit(
                kind, run_id,
                phase=JobPhase.SUCCEEDED,
                final_result=output,
                input_echo=params.model_dump(mode="json", exclude_none=True),
                completed_at=_now(),
            )
            logger.info("%s job %s succeeded (%d chars)", kind.value, run_id, len(output))
        except RunSuperseded:
            logger.info("%s run %s was superseded, stopping", kind.value, run_id)
        except asyncio.CancelledError:
            self._fail(kind, run_id, ProviderErrorKind.INVOKE_FAILED, SHUTDOWN_MESSAGE)
            raise
        except ProviderError as exc:
            self._fail(kind, run_id, exc.kind, exc.message)
        except Exception as exc:
            logger.exception("%s job %s crashed", kind.value, run_id)
            self._fail(kind, run_id, ProviderErrorKind.INVOKE_FAILED, f"{type(exc).__name__}: {exc}")
        finally:
            if created:
                try:
                    await provider.release(handle)
                except Exception as exc:
                    logger.warning("Releasing %s provider handle failed: %s", kind.value, exc)

    def _commit(self, kind: JobKind, run_id: str, **fields: Any) -> None:
        owner = self._store.read_all().get(field_key(kind, "run_id"))
        if owner != run_id:
            raise RunSuperseded(run_id)
        fields["updated_at"] = _now()
        self._store.merge_patch(record_patch(kind, **fields))

    def _fail(self, kind: JobKind, run_id: str, error_kind: ProviderErrorKind, message: str) -> None:
        logger.warning("%s job %s failed (%s): %s", kind.value, run_id, error_kind.value, message)
        try:
            self._commit(
                kind, run_id,
                phase=JobPhase.FAILED,
                error_message=message,
                error_kind=error_kind.value,
                completed_at=_now(),
            )
        except RunSuperseded:
            logger.info("%s run %s was superseded before its failure was recorded", kind.value, run_id)

    def _is_stale(self, record: JobRecord) -> bool:
        if record.updated_at is None:
            return True
        updated = record.updated_at
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        return _now() - updated > self._stale_after

    def _reject(self, kind: JobKind, reason: str) -> JobAck:
        logger.info("Rejected %s job: %s", kind.value, reason)
        return JobAck(accepted=False, reason=reason)

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.pop(task, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Job task %s crashed", task.get_name(), exc_info=exc)
