"""Chained detect-language -> translate pipeline.

Watches the store for a language detection run that finishes successfully and
submits a translation of the latest summary into the detected language. The
chain is one-shot and best-effort: failed detections never trigger it and a
failed translation is not retried.
"""

import logging
from typing import Callable, Optional

from pagebrief.jobs.models import JobKind, JobPhase, JobRecord, JobRequest, field_key
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.storage.state_store import StateStore, StoreChange

logger = logging.getLogger(__name__)

_DETECT_PHASE = field_key(JobKind.DETECT_LANGUAGE, "phase")


class TranslationChain:
    def __init__(self, store: StateStore, orchestrator: JobOrchestrator):
        self._store = store
        self._orchestrator = orchestrator
        self._last_handled_run: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    def attach(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def _on_change(self, change: StoreChange) -> None:
        phase = change.values.get(_DETECT_PHASE)
        if phase is None:
            return
        if phase.old != JobPhase.RUNNING.value or phase.new != JobPhase.SUCCEEDED.value:
            return

        state = self._store.read_all()
        detection = JobRecord.from_state(JobKind.DETECT_LANGUAGE, state)
        if detection.error_message or not detection.final_result:
            return
        # One detection run at a time: a repeat notification carries the last run id.
        if detection.run_id == self._last_handled_run:
            return
        self._last_handled_run = detection.run_id

        summary = JobRecord.from_state(JobKind.SUMMARIZE, state)
        if summary.phase != JobPhase.SUCCEEDED or not summary.final_result:
            logger.warning(
                "Language detected (%s) but there is no finished summary to translate",
                detection.final_result,
            )
            return

        target = detection.final_result.strip()
        ack = self._orchestrator.submit(JobRequest(
            kind=JobKind.TRANSLATE,
            input_text=summary.final_result,
            parameters={"target_language": target},
        ))
        if ack.accepted:
            logger.info("Chained translate job %s into '%s'", ack.run_id, target)
        else:
            logger.warning("Chained translate job into '%s' was rejected: %s", target, ack.reason)
