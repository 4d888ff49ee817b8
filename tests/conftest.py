"""Shared test fixtures."""

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pytest

from pagebrief.jobs.models import JobKind
from pagebrief.jobs.orchestrator import JobOrchestrator
from pagebrief.providers.base import Availability, Capability, CapabilityProvider
from pagebrief.providers.registry import ProviderRegistry
from pagebrief.storage.state_store import InMemoryStateStore, StoreChange


class FakeProvider(CapabilityProvider):
    """Scriptable provider.

    ``chunks`` makes it a streaming provider; ``fail_at`` is one of
    availability / create / invoke / stream and raises ``error`` there.
    ``gate`` blocks the availability check until it is set.
    """

    def __init__(
        self,
        capability: Capability,
        *,
        availability: Availability = Availability.AVAILABLE,
        progress: Sequence[float] = (),
        result: str = "",
        chunks: Optional[Sequence[str]] = None,
        fail_at: Optional[str] = None,
        error: Optional[BaseException] = None,
        gate: Optional[asyncio.Event] = None,
    ):
        self.capability = capability
        self.streaming = chunks is not None
        self._availability_value = availability
        self._progress = list(progress)
        self._result = result
        self._chunks = list(chunks) if chunks is not None else None
        self._fail_at = fail_at
        self._error = error or RuntimeError(f"{fail_at} exploded")
        self._gate = gate
        self.calls: List[str] = []
        self.configs: List[Dict[str, Any]] = []
        self.inputs: List[str] = []
        self.released: List[Any] = []
        self.stream_closed = False

    async def _availability(self) -> Availability:
        self.calls.append("availability")
        if self._gate is not None:
            await self._gate.wait()
        if self._fail_at == "availability":
            raise self._error
        return self._availability_value

    async def _create(self, config, on_download_progress):
        self.calls.append("create")
        self.configs.append(config)
        for loaded in self._progress:
            await asyncio.sleep(0)
            on_download_progress(loaded)
        if self._fail_at == "create":
            raise self._error
        return f"{self.capability.value}-handle"

    async def _invoke(self, handle, text):
        self.calls.append("invoke")
        self.inputs.append(text)
        if self._fail_at == "invoke":
            raise self._error
        if self._chunks is not None:
            return self._stream()
        return self._result

    async def _stream(self):
        try:
            for chunk in self._chunks:
                await asyncio.sleep(0)
                yield chunk
            if self._fail_at == "stream":
                raise self._error
        finally:
            self.stream_closed = True

    async def _release(self, handle):
        self.released.append(handle)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def changes(store) -> List[StoreChange]:
    """Every change the store publishes, in order."""
    recorded: List[StoreChange] = []
    store.subscribe(recorded.append)
    return recorded


@pytest.fixture
def build_orchestrator(store):
    """Factory: orchestrator over ``store`` with fake providers by kind.

    Kinds not given get a provider that succeeds with a fixed result.
    """

    def _build(stale_after_seconds: int = 600, **by_kind: CapabilityProvider) -> JobOrchestrator:
        providers = {
            JobKind.SUMMARIZE: FakeProvider(Capability.SUMMARIZER, chunks=["Summary", " text."]),
            JobKind.DETECT_LANGUAGE: FakeProvider(Capability.LANGUAGE_DETECTOR, result="en"),
            JobKind.TRANSLATE: FakeProvider(Capability.TRANSLATOR, result="Translated."),
        }
        for name, provider in by_kind.items():
            providers[JobKind(name)] = provider
        return JobOrchestrator(store, ProviderRegistry(providers), stale_after_seconds=stale_after_seconds)

    return _build


def field_history(changes: List[StoreChange], key: str) -> List[Any]:
    return [change.values[key].new for change in changes if key in change.values]


@pytest.fixture
def history():
    """``history(changes, key)`` -> successive new values of ``key``."""
    return field_history


ARTICLE = (
    "The city council approved a new budget for public transport on Monday. "
    "The budget adds twelve electric buses and extends night service on three routes. "
    "Council members said the transport plan responds to record ridership last year. "
    "Critics argued the budget ignores cycling infrastructure and road repairs. "
    "The mayor promised a separate cycling plan before the end of the year. "
    "Transport officials expect the new buses to enter service next spring. "
    "Ticket prices will stay the same for at least two more years under the plan."
)


@pytest.fixture
def article() -> str:
    return ARTICLE
