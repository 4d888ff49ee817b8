"""Provider registry: one capability provider per job kind."""

import logging
from typing import Dict, List, Optional

import httpx

from pagebrief.config import Settings
from pagebrief.jobs.models import JobKind
from pagebrief.providers.base import CAPABILITY_BY_KIND, Availability, CapabilityProvider
from pagebrief.providers.http_provider import HttpLanguageDetector, HttpSummarizer, HttpTranslator
from pagebrief.providers.local import LocalLanguageDetector, LocalSummarizer, LocalTranslator

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps job kinds to the provider that serves them.

    - Providers are registered explicitly, one per kind
    - ``aclose()`` releases shared resources (HTTP connection pools)
    """

    def __init__(self, providers: Optional[Dict[JobKind, CapabilityProvider]] = None):
        self._providers: Dict[JobKind, CapabilityProvider] = {}
        self._shared_clients: List[httpx.AsyncClient] = []
        for kind, provider in (providers or {}).items():
            self.register(kind, provider)

    def register(self, kind: JobKind, provider: CapabilityProvider) -> None:
        expected = CAPABILITY_BY_KIND[kind]
        if provider.capability != expected:
            raise ValueError(
                f"Provider {type(provider).__name__} serves '{provider.capability.value}', "
                f"job kind '{kind.value}' needs '{expected.value}'"
            )
        self._providers[kind] = provider
        logger.info("Registered provider for %s: %s", kind.value, type(provider).__name__)

    def get(self, kind: JobKind) -> Optional[CapabilityProvider]:
        return self._providers.get(kind)

    def kinds(self) -> List[JobKind]:
        return list(self._providers.keys())

    async def availability(self) -> Dict[str, str]:
        """Availability of every registered provider, for health reporting."""
        report = {}
        for kind, provider in self._providers.items():
            try:
                report[kind.value] = (await provider.check_availability()).value
            except Exception as exc:
                logger.warning("Availability check for %s failed: %s", kind.value, exc)
                report[kind.value] = Availability.UNAVAILABLE.value
        return report

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
        for client in self._shared_clients:
            await client.aclose()
        self._shared_clients.clear()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderRegistry":
        """Build the registry for ``settings.provider_mode``."""
        registry = cls()
        if settings.provider_mode == "http":
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.provider_timeout_seconds, connect=10.0)
            )
            registry._shared_clients.append(client)
            base_url = settings.provider_base_url
            registry.register(JobKind.SUMMARIZE, HttpSummarizer(base_url, client=client))
            registry.register(JobKind.DETECT_LANGUAGE, HttpLanguageDetector(base_url, client=client))
            registry.register(JobKind.TRANSLATE, HttpTranslator(base_url, client=client))
        else:
            registry.register(JobKind.SUMMARIZE, LocalSummarizer())
            registry.register(JobKind.DETECT_LANGUAGE, LocalLanguageDetector())
            registry.register(JobKind.TRANSLATE, LocalTranslator())
        return registry
