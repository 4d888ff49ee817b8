"""Tests for the HTTP API."""

import asyncio
import json

import httpx
import pytest

from pagebrief.api.v1.state import format_event, state_events
from pagebrief.config import Settings
from pagebrief.jobs.models import JobKind
from pagebrief.main import build_state_store, create_app
from pagebrief.providers.base import Capability
from pagebrief.providers.local import LocalLanguageDetector, LocalSummarizer
from pagebrief.providers.registry import ProviderRegistry
from pagebrief.storage.state_store import InMemoryStateStore, JsonFileStateStore


@pytest.fixture
def gate():
    return asyncio.Event()


@pytest.fixture
def app(store, fake_provider, gate):
    providers = ProviderRegistry({
        JobKind.SUMMARIZE: LocalSummarizer(),
        JobKind.DETECT_LANGUAGE: LocalLanguageDetector(),
        JobKind.TRANSLATE: fake_provider(Capability.TRANSLATOR, result="Traduction.", gate=gate),
    })
    return create_app(settings=Settings(), store=store, providers=providers)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_submit_and_read_job(app, client, article):
    response = await client.post("/api/v1/jobs", json={
        "kind": "summarize",
        "input_text": article,
        "parameters": {"type": "tldr", "length": "short"},
    })

    assert response.status_code == 202
    body = response.json()
    assert body["accepted"] is True
    assert body["run_id"]

    await app.state.orchestrator.join()
    record = (await client.get("/api/v1/jobs/summarize")).json()
    assert record["phase"] == "succeeded"
    assert record["final_result"]
    assert record["input_echo"] == {"type": "tldr", "length": "short"}


async def test_second_request_is_rejected_with_409(app, client, gate):
    payload = {"kind": "translate", "input_text": "Hello", "parameters": {"target_language": "fr"}}

    first = await client.post("/api/v1/jobs", json=payload)
    second = await client.post("/api/v1/jobs", json=payload)

    assert first.status_code == 202
    assert second.status_code == 409
    assert second.json()["accepted"] is False
    assert "already in progress" in second.json()["reason"]

    gate.set()
    await app.state.orchestrator.join()


async def test_invalid_parameters_are_rejected(client):
    response = await client.post("/api/v1/jobs", json={
        "kind": "summarize", "input_text": "text", "parameters": {"type": "essay"},
    })
    assert response.status_code == 409
    assert "Invalid parameters" in response.json()["reason"]


async def test_unknown_kind_is_a_validation_error(client):
    response = await client.post("/api/v1/jobs", json={"kind": "paraphrase", "input_text": "text"})
    assert response.status_code == 422
    assert (await client.get("/api/v1/jobs/paraphrase")).status_code == 422


async def test_state_snapshot(app, client, store, article):
    assert (await client.get("/api/v1/state")).json() == {}

    await client.post("/api/v1/jobs", json={"kind": "summarize", "input_text": article})
    await app.state.orchestrator.join()

    first = (await client.get("/api/v1/state")).json()
    second = (await client.get("/api/v1/state")).json()
    assert first == second == store.read_all()
    assert first["summarize.phase"] == "succeeded"


async def test_job_view(app, client, article):
    await client.post("/api/v1/jobs", json={
        "kind": "summarize", "input_text": article, "parameters": {"type": "key-points"},
    })
    await app.state.orchestrator.join()

    view = (await client.get("/api/v1/jobs/summarize/view")).json()
    assert view["phase"] == "succeeded"
    assert view["is_error"] is False
    assert view["text"].startswith("• ")
    assert view["status_message"] == "Summary generated successfully!"


async def test_summarize_page_rejects_short_pages(app, client, store):
    response = await client.post("/api/v1/summarize-page", json={"text": "Too short."})

    assert response.status_code == 400
    assert "Not enough content" in response.json()["detail"]
    assert store.read_all() == {}


async def test_summarize_page_requires_some_input(client):
    response = await client.post("/api/v1/summarize-page", json={"type": "tldr"})
    assert response.status_code == 400


async def test_summarize_page_from_html(app, client, article):
    html = f"<html><body><article><p>{article}</p></article></body></html>"

    response = await client.post("/api/v1/summarize-page", json={
        "html": html, "type": "headline", "length": "short",
    })

    assert response.status_code == 202
    await app.state.orchestrator.join()
    record = (await client.get("/api/v1/jobs/summarize")).json()
    assert record["phase"] == "succeeded"
    assert record["input_echo"] == {"type": "headline", "length": "short"}


async def test_extract(client):
    response = await client.post("/api/v1/extract", json={"selection": " picked \n text "})
    assert response.json() == {"text": "picked text"}


async def test_detect_then_translate_chain_through_api(app, client, gate, article):
    await client.post("/api/v1/jobs", json={"kind": "summarize", "input_text": article})
    await app.state.orchestrator.join()

    gate.set()
    response = await client.post("/api/v1/jobs", json={
        "kind": "detect_language", "input_text": "Le chat est dans la maison et les enfants.",
    })
    assert response.status_code == 202
    await app.state.orchestrator.join()

    translate = (await client.get("/api/v1/jobs/translate")).json()
    assert translate["phase"] == "succeeded"
    assert translate["input_echo"] == {"target_language": "fr"}


async def test_health(client, gate):
    gate.set()
    response = await client.get("/health")
    body = response.json()
    assert response.status_code == 200
    assert body["status"] == "healthy"
    assert body["providers"]["summarize"] == "available"
    assert (await client.get("/api/v1/health")).status_code == 200


async def test_state_events_stream(store):
    disconnected = False

    async def is_disconnected():
        return disconnected

    events = state_events(store, is_disconnected, keepalive_seconds=0.05)

    snapshot = await events.__anext__()
    assert snapshot == format_event("snapshot", {})
    assert store.subscriber_count == 1

    store.merge_patch({"summarize.phase": "initializing"})
    change = await events.__anext__()
    assert change.startswith("event: change\n")
    payload = json.loads(change.split("data: ", 1)[1])
    assert payload["changed_fields"] == ["summarize.phase"]
    assert payload["values"]["summarize.phase"] == {"old": None, "new": "initializing"}

    assert await events.__anext__() == ": keepalive\n\n"

    disconnected = True
    with pytest.raises(StopAsyncIteration):
        await events.__anext__()
    assert store.subscriber_count == 0


def test_build_state_store(tmp_path):
    assert isinstance(build_state_store(Settings(store_backend="memory")), InMemoryStateStore)
    file_store = build_state_store(Settings(store_backend="file", store_path=str(tmp_path / "s.json")))
    assert isinstance(file_store, JsonFileStateStore)
