"""
Provider Registry — Pick a provider for a repository URL.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

from .base import GitProvider

logger = logging.getLogger(__name__)

PROVIDER_GITHUB = "github"
PROVIDER_AZURE = "azure"
PROVIDER_UNKNOWN = "unknown"


def detect_provider(url: str) -> str:
    """Provider kind for a URL: "github", "azure" or "unknown"."""
    lowered = url.strip().lower()
    if "github.com" in lowered:
        return PROVIDER_GITHUB
    if "dev.azure.com" in lowered or ".visualstudio.com" in lowered:
        return PROVIDER_AZURE
    return PROVIDER_UNKNOWN


def _default_factories() -> Dict[str, Callable[[], GitProvider]]:
    from .azure import AzureDevOpsProvider
    from .github import GitHubProvider

    return {
        PROVIDER_GITHUB: GitHubProvider,
        PROVIDER_AZURE: AzureDevOpsProvider,
    }


class ProviderRegistry:
    """
    Registry for provider lookup by URL.

    Providers are created lazily, once per kind, and reused across
    repositories so authentication happens once per pass.
    """

    def __init__(self, factories: Optional[Dict[str, Callable[[], GitProvider]]] = None):
        self._factories = factories if factories is not None else _default_factories()
        self._providers: Dict[str, GitProvider] = {}

    def register(self, kind: str, provider: GitProvider) -> None:
        """Register a provider instance for a kind."""
        self._providers[kind] = provider
        logger.debug(f"Registered provider: {kind} ({provider.name})")

    def for_url(self, url: str) -> Optional[GitProvider]:
        """Provider for a repository URL, or None if unsupported."""
        kind = detect_provider(url)
        if kind in self._providers:
            return self._providers[kind]

        factory = self._factories.get(kind)
        if factory is None:
            return None

        provider = factory()
        self._providers[kind] = provider
        return provider
