"""Providers backed by a remote inference service over HTTP.

Wire protocol, per capability (``summarizer``, ``language-detector``,
``translator``) under ``{base_url}/v1/{capability}``:

  GET    /availability                     -> {"availability": "available"}
  POST   /sessions                         -> NDJSON: downloadprogress* then ready | error
  POST   /sessions/{id}/prompt             -> {"result": "..."}
  POST   /sessions/{id}/prompt-streaming   -> NDJSON: {"chunk": "..."}*
  DELETE /sessions/{id}
"""

import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from pagebrief.jobs.errors import ProviderError, ProviderErrorKind
from pagebrief.providers.base import (
    Availability,
    Capability,
    CapabilityProvider,
    DownloadProgressCallback,
    InvokeResult,
)

logger = logging.getLogger(__name__)


class HttpCapabilityProvider(CapabilityProvider):
    """Generic HTTP provider; subclasses pick the capability and result shape."""

    def __init__(self, base_url: str, client: Optional[httpx.AsyncClient] = None, timeout_seconds: float = 120.0):
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds, connect=10.0))

    def _url(self, path: str) -> str:
        return f"{self._base_url}/v1/{self.capability.value}{path}"

    async def _availability(self) -> Availability:
        response = await self._client.get(self._url("/availability"))
        response.raise_for_status()
        return Availability(response.json()["availability"])

    async def _create(self, config: Dict[str, Any], on_download_progress: DownloadProgressCallback) -> Any:
        async with self._client.stream("POST", self._url("/sessions"), json=config) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                event = json.loads(line)
                kind = event.get("event")
                if kind == "downloadprogress":
                    on_download_progress(float(event.get("loaded", 0.0)))
                elif kind == "ready":
                    return event["session_id"]
                elif kind == "error":
                    raise ProviderError(
                        ProviderErrorKind.CREATE_FAILED,
                        event.get("message") or f"{self.capability.value} session setup failed",
                    )
        raise ProviderError(
            ProviderErrorKind.CREATE_FAILED,
            f"{self.capability.value} session stream ended before the session was ready",
        )

    async def _invoke(self, handle: Any, text: str) -> InvokeResult:
        if self.streaming:
            return self._stream(handle, text)
        response = await self._client.post(
            self._url(f"/sessions/{handle}/prompt"), json={"input": text}
        )
        response.raise_for_status()
        return self._parse_result(response.json())

    async def _stream(self, handle: Any, text: str) -> AsyncIterator[str]:
        async with self._client.stream(
            "POST", self._url(f"/sessions/{handle}/prompt-streaming"), json={"input": text}
        ) as response:
            response.raise_for_status()
            async for line in response.aiter_lines():
                if not line.strip():
                    continue
                payload = json.loads(line)
                if "error" in payload:
                    raise ProviderError(ProviderErrorKind.INVOKE_FAILED, payload["error"])
                chunk = payload.get("chunk")
                if chunk:
                    yield chunk

    def _parse_result(self, payload: Dict[str, Any]) -> str:
        return payload.get("result") or ""

    async def _release(self, handle: Any) -> None:
        response = await self._client.delete(self._url(f"/sessions/{handle}"))
        if response.status_code not in (200, 204, 404):
            logger.warning(
                "Releasing %s session %s returned HTTP %s",
                self.capability.value, handle, response.status_code,
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class HttpSummarizer(HttpCapabilityProvider):
    capability = Capability.SUMMARIZER
    streaming = True


class HttpLanguageDetector(HttpCapabilityProvider):
    capability = Capability.LANGUAGE_DETECTOR

    def _parse_result(self, payload: Dict[str, Any]) -> str:
        results = payload.get("results") or []
        if not results:
            return ""
        best = max(results, key=lambda r: r.get("confidence", 0.0))
        return best.get("detected_language") or ""


class HttpTranslator(HttpCapabilityProvider):
    capability = Capability.TRANSLATOR
