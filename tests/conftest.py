"""
Shared fixtures for promptsync tests.

Every fixture works inside tmp_path: a storage root for mirrors and
ledgers, and a separate activation directory standing in for the
editor's prompts folder. Remote repositories are served by MockProvider.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from promptsync.activation.ledger import ActivationLedger
from promptsync.activation.projector import ActivationProjector
from promptsync.catalog.catalog import PromptCatalog
from promptsync.config.loader import Settings
from promptsync.mirror.engine import SyncEngine
from promptsync.mirror.storage import RepositoryMirror
from promptsync.providers.mock import MockProvider
from promptsync.providers.registry import PROVIDER_AZURE, PROVIDER_GITHUB, ProviderRegistry
from promptsync.service import PromptSync

REPO_A = "https://github.com/acme/prompts"


@pytest.fixture
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "storage"


@pytest.fixture
def prompts_dir(tmp_path: Path) -> Path:
    path = tmp_path / "prompts"
    path.mkdir()
    return path


@pytest.fixture
def settings(storage_dir: Path, prompts_dir: Path) -> Settings:
    return Settings(
        repositories=[REPO_A],
        prompts_dir=prompts_dir,
        storage_dir=storage_dir,
    )


@pytest.fixture
def mirror(storage_dir: Path) -> RepositoryMirror:
    return RepositoryMirror(storage_dir)


@pytest.fixture
def ledger(mirror: RepositoryMirror) -> ActivationLedger:
    return ActivationLedger(mirror.storage_root)


@pytest.fixture
def projector(prompts_dir: Path, mirror: RepositoryMirror,
              ledger: ActivationLedger) -> ActivationProjector:
    return ActivationProjector(prompts_dir, mirror, ledger)


@pytest.fixture
def catalog(mirror: RepositoryMirror, projector: ActivationProjector) -> PromptCatalog:
    return PromptCatalog(mirror, projector)


@pytest.fixture
def provider() -> MockProvider:
    return MockProvider()


@pytest.fixture
def registry(provider: MockProvider) -> ProviderRegistry:
    """Registry serving GitHub and Azure URLs from the same mock."""
    registry = ProviderRegistry(factories={})
    registry.register(PROVIDER_GITHUB, provider)
    registry.register(PROVIDER_AZURE, provider)
    return registry


@pytest.fixture
def engine(mirror, projector, registry, settings) -> SyncEngine:
    return SyncEngine(mirror, projector, registry, settings)


@pytest.fixture
def service(settings: Settings, registry: ProviderRegistry) -> PromptSync:
    return PromptSync.from_settings(settings, providers=registry)


@pytest.fixture
def deny_symlinks(monkeypatch):
    """Make os.symlink fail the way it does on Windows without developer mode."""
    def _denied(*args, **kwargs):
        raise PermissionError(1, "Operation not permitted")

    monkeypatch.setattr("promptsync.activation.projector.os.symlink", _denied)
