"""Capability provider interface.

A provider wraps one asynchronous capability (summarization, language
detection, translation) behind a three-step contract:

1. ``check_availability()`` - must be called before ``create``
2. ``create(config, on_download_progress)`` - may download a model first
3. ``invoke(handle, text)`` - a single string, or an async iterator of chunks

To add a backend, subclass ``CapabilityProvider`` and implement
``_availability``, ``_create`` and ``_invoke`` (optionally ``_release``).
Failures from any stage surface as ``ProviderError`` with the stage's kind.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, AsyncIterator, Callable, Dict, Optional, Union

from pagebrief.jobs.errors import ProviderError, ProviderErrorKind, RunSuperseded
from pagebrief.jobs.models import JobKind


class Availability(str, Enum):
    UNAVAILABLE = "unavailable"
    DOWNLOADABLE = "downloadable"
    AVAILABLE = "available"


class Capability(str, Enum):
    SUMMARIZER = "summarizer"
    LANGUAGE_DETECTOR = "language-detector"
    TRANSLATOR = "translator"


CAPABILITY_BY_KIND = {
    JobKind.SUMMARIZE: Capability.SUMMARIZER,
    JobKind.DETECT_LANGUAGE: Capability.LANGUAGE_DETECTOR,
    JobKind.TRANSLATE: Capability.TRANSLATOR,
}

# Download progress callback: fn(loaded_fraction) with 0.0 <= loaded_fraction <= 1.0.
# Called zero or more times before create() returns.
DownloadProgressCallback = Callable[[float], None]

InvokeResult = Union[str, AsyncIterator[str]]


def _noop_progress(loaded: float) -> None:
    return None


class CapabilityProvider(ABC):
    """Abstract base class for capability providers."""

    capability: Capability
    streaming: bool = False

    @abstractmethod
    async def _availability(self) -> Availability:
        ...

    @abstractmethod
    async def _create(
        self,
        config: Dict[str, Any],
        on_download_progress: DownloadProgressCallback,
    ) -> Any:
        ...

    @abstractmethod
    async def _invoke(self, handle: Any, text: str) -> InvokeResult:
        ...

    async def _release(self, handle: Any) -> None:
        return None

    async def check_availability(self) -> Availability:
        try:
            return Availability(await self._availability())
        except (ProviderError, RunSuperseded):
            raise
        except Exception as exc:
            raise ProviderError(
                ProviderErrorKind.CAPABILITY_UNAVAILABLE,
                f"{self.capability.value} availability check failed: {exc}",
            ) from exc

    async def create(
        self,
        config: Dict[str, Any],
        on_download_progress: Optional[DownloadProgressCallback] = None,
    ) -> Any:
        try:
            return await self._create(config, on_download_progress or _noop_progress)
        except (ProviderError, RunSuperseded):
            raise
        except Exception as exc:
            raise ProviderError(
                ProviderErrorKind.CREATE_FAILED,
                f"Could not create {self.capability.value}: {exc}",
            ) from exc

    async def invoke(self, handle: Any, text: str) -> InvokeResult:
        try:
            result = await self._invoke(handle, text)
        except (ProviderError, RunSuperseded):
            raise
        except Exception as exc:
            raise ProviderError(
                ProviderErrorKind.INVOKE_FAILED,
                f"{self.capability.value} call failed: {exc}",
            ) from exc
        if isinstance(result, str):
            return result
        return self._guard_stream(result)

    async def release(self, handle: Any) -> None:
        await self._release(handle)

    async def aclose(self) -> None:
        """Release shared resources (connections). Default: nothing to do."""
        return None

    async def _guard_stream(self, stream: AsyncIterator[str]) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                yield chunk
        except (ProviderError, RunSuperseded):
            raise
        except Exception as exc:
            raise ProviderError(
                ProviderErrorKind.INVOKE_FAILED,
                f"{self.capability.value} stream failed: {exc}",
            ) from exc
        finally:
            # Closing this wrapper early must close the provider's stream too.
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
