"""
Sync Engine — Bring every repository mirror up to date.

One pass walks the configured repositories in order. Each repository is
isolated: its failure is recorded in the report and the next repository
is processed as usual.

Per repository:

1. Pick a provider for the URL and make sure it is authenticated
2. Fetch the full tree at the configured branch
3. Keep blobs under an enabled category directory with an allowed extension
4. Fetch each file and store it in the mirror under its basename
5. Re-activate changed files that are currently active

## Usage

    engine = SyncEngine(mirror, projector, ProviderRegistry(), settings)
    report = engine.sync_all(settings.repository_refs)
    if not report.overall_success:
        for error in report.errors:
            print(error)
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from ..activation.projector import ActivationProjector
from ..config.loader import RepositoryRef, Settings
from ..errors import (
    ActivationFailed,
    AuthRequired,
    ContentFetchFailed,
    NoRelevantFiles,
    PromptSyncError,
    UnsupportedRepository,
    WriteFailed,
)
from ..providers.base import GitProvider, ProviderError, TreeEntry
from ..providers.registry import ProviderRegistry
from .storage import ALLOWED_EXTENSIONS, RepositoryMirror

logger = logging.getLogger(__name__)


@dataclass
class RepositorySyncResult:
    """Outcome of syncing one repository."""

    url: str
    success: bool
    items_updated: int = 0
    error: Optional[str] = None
    error_kind: Optional[str] = None

    def to_dict(self) -> dict:
        data = {"url": self.url, "success": self.success, "items_updated": self.items_updated}
        if self.error is not None:
            data["error"] = self.error
            data["error_kind"] = self.error_kind
        return data


@dataclass
class SyncReport:
    """Outcome of a full pass over all configured repositories."""

    repositories: List[RepositorySyncResult] = field(default_factory=list)

    @property
    def total_items_updated(self) -> int:
        return sum(r.items_updated for r in self.repositories)

    @property
    def overall_success(self) -> bool:
        return all(r.success for r in self.repositories)

    @property
    def errors(self) -> List[str]:
        return [f"{r.url}: {r.error}" for r in self.repositories if not r.success]

    @property
    def succeeded(self) -> List[RepositorySyncResult]:
        return [r for r in self.repositories if r.success]

    @property
    def failed(self) -> List[RepositorySyncResult]:
        return [r for r in self.repositories if not r.success]

    def to_dict(self) -> dict:
        return {
            "repositories": [r.to_dict() for r in self.repositories],
            "total_items_updated": self.total_items_updated,
            "overall_success": self.overall_success,
            "errors": self.errors,
        }


def normalize_tree_path(path: str) -> str:
    return path.replace("\\", "/").lstrip("/")


def filter_relevant(
    entries: Iterable[TreeEntry],
    prefixes: Sequence[str],
) -> List[TreeEntry]:
    """
    Blobs under one of the prefixes with an allowed extension, in tree order.

    Prefix matching is case-sensitive; no prefixes means no matches.
    """
    relevant = []
    for entry in entries:
        if not entry.is_blob:
            continue
        path = normalize_tree_path(entry.path)
        if not any(path.startswith(prefix) for prefix in prefixes):
            continue
        if not path.endswith(ALLOWED_EXTENSIONS):
            continue
        relevant.append(TreeEntry(path=path, type=entry.type))
    return relevant


class SyncEngine:
    """Fetches configured repositories into the mirror."""

    def __init__(
        self,
        mirror: RepositoryMirror,
        projector: ActivationProjector,
        providers: ProviderRegistry,
        settings: Settings,
    ):
        self.mirror = mirror
        self.projector = projector
        self.providers = providers
        self.settings = settings

    # ─── Full pass ──────────────────────────────────────────

    def sync_all(self, repositories: Optional[Sequence[RepositoryRef]] = None) -> SyncReport:
        """
        Sync every repository in order.

        Per-repository failures are captured in the report, never raised.
        """
        if repositories is None:
            repositories = self.settings.repository_refs

        report = SyncReport()
        logger.info(f"[sync] Syncing {len(repositories)} repositories")

        for ref in repositories:
            try:
                updated = self.sync_repository(ref)
            except ContentFetchFailed as e:
                logger.error(f"[sync] {ref.url}: {e}", extra={"repository": ref.url})
                result = RepositorySyncResult(
                    url=ref.url, success=False, items_updated=e.items_updated,
                    error=e.message, error_kind=e.kind,
                )
            except PromptSyncError as e:
                logger.error(f"[sync] {ref.url}: {e}", extra={"repository": ref.url})
                result = RepositorySyncResult(
                    url=ref.url, success=False, error=e.message, error_kind=e.kind,
                )
            except ProviderError as e:
                logger.error(f"[sync] {ref.url}: {e}", extra={"repository": ref.url})
                result = RepositorySyncResult(
                    url=ref.url, success=False, error=str(e), error_kind=type(e).__name__,
                )
            except Exception as e:
                # Unexpected failures stay scoped to this repository
                logger.exception(f"[sync] {ref.url}: unexpected error: {e}",
                                 extra={"repository": ref.url})
                result = RepositorySyncResult(
                    url=ref.url, success=False, error=str(e) or type(e).__name__,
                    error_kind=type(e).__name__,
                )
            else:
                result = RepositorySyncResult(url=ref.url, success=True, items_updated=updated)
            report.repositories.append(result)

        ok_count = len(report.succeeded)
        logger.info(
            f"[sync] {ok_count}/{len(report.repositories)} repositories synced, "
            f"{report.total_items_updated} items updated"
        )
        return report

    # ─── One repository ─────────────────────────────────────

    def _authenticated_provider(self, url: str) -> GitProvider:
        provider = self.providers.for_url(url)
        if provider is None:
            raise UnsupportedRepository(f"No provider supports {url}", repository=url)

        if provider.check_authentication():
            return provider

        logger.info(f"[sync] Requesting {provider.name} authentication for {url}")
        if provider.request_authentication():
            return provider

        raise AuthRequired(
            f"Authentication with {provider.name} is required to sync {url}",
            repository=url,
        )

    def sync_repository(self, ref: RepositoryRef) -> int:
        """
        Sync one repository. Returns the number of mirror files that changed.

        Raises:
            UnsupportedRepository, AuthRequired, NoRelevantFiles,
            ContentFetchFailed, ProviderError
        """
        url = ref.url
        provider = self._authenticated_provider(url)
        coords = provider.parse_repository_url(url)

        logger.debug(f"[sync] Fetching tree {coords.owner}/{coords.repo}@{ref.branch}")
        tree = provider.get_repository_tree(coords.owner, coords.repo, ref.branch)

        prefixes = self.settings.enabled_prefixes()
        relevant = filter_relevant(tree, prefixes)
        if not relevant:
            valid = ", ".join(prefixes) if prefixes else "(no categories enabled)"
            raise NoRelevantFiles(
                f"No relevant files found in {url}; expected files under: {valid}",
                repository=url,
            )

        logger.info(f"[sync] {url}: {len(relevant)} relevant files", extra={"repository": url})

        updated = 0
        for entry in relevant:
            try:
                content = provider.get_file_content(coords.owner, coords.repo, entry.path, ref.branch)
            except ProviderError as e:
                raise ContentFetchFailed(
                    f"Failed to fetch {entry.path}: {e}",
                    path=entry.path, repository=url, items_updated=updated,
                )

            if not content:
                logger.warning(f"[sync] Skipping empty file {entry.path}", extra={"repository": url})
                continue

            filename = posixpath.basename(entry.path)
            try:
                changed = self.mirror.put(url, filename, content)
            except WriteFailed as e:
                logger.error(f"[sync] {e}", extra={"repository": url})
                continue

            if not changed:
                continue
            updated += 1
            self._refresh_active(url, filename)

        return updated

    def _refresh_active(self, url: str, filename: str) -> None:
        """Re-project a changed file if it is currently active."""
        if not self.projector.is_active(url, filename):
            return
        try:
            self.projector.activate(url, filename)
            logger.debug(f"[sync] Refreshed active entry for {filename}")
        except ActivationFailed as e:
            logger.warning(f"[sync] Could not refresh {filename}: {e}", extra={"repository": url})
