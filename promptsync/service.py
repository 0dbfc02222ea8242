"""
PromptSync — Entry point for sync, activation and listing.

Wires the mirror, projector, catalog and sync engine together from
Settings, and runs the full sync pass:

1. Fetch every configured repository into its mirror
2. Re-point broken links at the current mirror location
3. Restore active entries that went missing or changed name
4. Remove stray copies of mirrored files
5. Persist the per-repository status

Only one pass runs at a time. A trigger that arrives while a pass is
running is dropped, not queued.

## Usage

    from promptsync.config.loader import load_settings
    from promptsync.service import PromptSync

    sync = PromptSync.from_settings(load_settings())
    outcome = sync.sync_now()
    print(outcome.summary)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .activation.ledger import ActivationLedger
from .activation.projector import ActivationProjector, CleanupReport, RepairReport
from .catalog.catalog import PromptCatalog
from .catalog.models import PromptRecord
from .config.loader import Settings
from .errors import ActivationFailed, SyncInProgress
from .mirror.engine import SyncEngine, SyncReport
from .mirror.state import SyncState
from .mirror.storage import RepositoryMirror
from .providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

LEGACY_DIRNAME = ".promptitude"


@dataclass
class HealReport:
    """What the self-healing steps changed."""

    repair: RepairReport = field(default_factory=RepairReport)
    recreated: List[str] = field(default_factory=list)
    cleanup: CleanupReport = field(default_factory=CleanupReport)


@dataclass
class SyncOutcome:
    """Result of one sync pass."""

    report: SyncReport
    heal: HealReport
    summary: str

    @property
    def success(self) -> bool:
        return self.report.overall_success


def summarize(report: SyncReport) -> str:
    """One-line summary: success, partial success, or all failed."""
    total = len(report.repositories)
    if report.overall_success:
        return (
            f"Sync completed successfully. {report.total_items_updated} items updated "
            f"across {total} repositories."
        )

    ok_count = len(report.succeeded)
    if ok_count > 0:
        return (
            f"Partial sync completed. {report.total_items_updated} items updated from "
            f"{ok_count}/{total} repositories. Errors: {'; '.join(report.errors)}"
        )

    return f"All repositories failed: {'; '.join(report.errors)}"


class PromptSync:
    """
    Facade over the sync engine, projector and catalog.

    Every query re-reads the filesystem; the only in-memory state is the
    busy flag.
    """

    def __init__(
        self,
        settings: Settings,
        mirror: RepositoryMirror,
        projector: ActivationProjector,
        engine: SyncEngine,
        catalog: PromptCatalog,
    ):
        self.settings = settings
        self.mirror = mirror
        self.projector = projector
        self.engine = engine
        self.catalog = catalog
        self._busy = threading.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        providers: Optional[ProviderRegistry] = None,
    ) -> "PromptSync":
        """Create the service and its collaborators from settings."""
        mirror = RepositoryMirror(settings.storage_root)
        ledger = ActivationLedger(mirror.storage_root)
        projector = ActivationProjector(settings.activation_dir, mirror, ledger)
        engine = SyncEngine(mirror, projector, providers or ProviderRegistry(), settings)
        catalog = PromptCatalog(mirror, projector)

        service = cls(settings, mirror, projector, engine, catalog)
        service.migrate_legacy_storage()
        return service

    @property
    def state_path(self) -> Path:
        return SyncState.path_in(self.mirror.storage_root)

    @property
    def is_syncing(self) -> bool:
        return self._busy.locked()

    # ─── Sync ───────────────────────────────────────────────

    def migrate_legacy_storage(self) -> bool:
        """Move mirrors kept inside the activation directory by older releases."""
        legacy = self.projector.activation_dir / LEGACY_DIRNAME / "repos"
        return self.mirror.migrate_legacy(legacy)

    def sync_now(self, raise_if_busy: bool = False) -> Optional[SyncOutcome]:
        """
        Run one full sync pass.

        Returns None if a pass is already running (or raises
        SyncInProgress when raise_if_busy is set).
        """
        if not self._busy.acquire(blocking=False):
            logger.info("[sync] Sync already in progress, skipping")
            if raise_if_busy:
                raise SyncInProgress("A sync pass is already running")
            return None

        try:
            return self._run_pass()
        finally:
            self._busy.release()

    def _run_pass(self) -> SyncOutcome:
        repositories = self.settings.repository_refs
        if not repositories:
            logger.warning("[sync] No repositories configured")

        logger.info("[sync] Starting sync...")
        report = self.engine.sync_all(repositories)
        heal = self.heal()

        summary = summarize(report)
        if report.overall_success:
            logger.info(f"[sync] {summary}")
        elif report.succeeded:
            logger.warning(f"[sync] {summary}")
        else:
            logger.error("[sync] All repositories failed to sync")

        self._record_state(report, summary)
        return SyncOutcome(report=report, heal=heal, summary=summary)

    def heal(self) -> HealReport:
        """Bring the activation directory back in line with mirrors and intent."""
        heal = HealReport()
        heal.repair = self.projector.reconcile_broken_links()
        heal.recreated = self.projector.recreate_missing_active(self.projector.expected_active())
        heal.cleanup = self.projector.cleanup_orphans()
        if heal.cleanup.removed:
            logger.info(f"[sync] Cleaned up {len(heal.cleanup.removed)} orphaned prompt files")
        return heal

    def _record_state(self, report: SyncReport, summary: str) -> None:
        state = SyncState.load(self.state_path)
        refs = {ref.url: ref for ref in self.settings.repository_refs}

        for result in report.repositories:
            ref = refs.get(result.url)
            status = state.ensure(result.url, ref.branch if ref else "main")
            if result.success:
                status.mark_ok(result.items_updated)
            else:
                status.mark_failed(result.error or "Unknown error", result.error_kind,
                                   result.items_updated)

        state.retain(list(refs))
        state.last_sync_iso = datetime.now(timezone.utc).isoformat()
        state.last_summary = summary
        try:
            state.save(self.state_path)
        except OSError as e:
            logger.warning(f"[sync] Could not save sync status: {e}")

    def status(self) -> SyncState:
        return SyncState.load(self.state_path)

    # ─── Activation ─────────────────────────────────────────

    def records(self) -> List[PromptRecord]:
        return self.catalog.records()

    def find(self, name: str, repository_url: Optional[str] = None) -> PromptRecord:
        """
        Look up a mirrored prompt by workspace name or original name.

        Raises:
            ActivationFailed: If nothing matches, or several repositories
                hold the name and no repository was given.
        """
        candidates = [
            r for r in self.records()
            if r.origin == "repository"
            and (repository_url is None or r.repository_url == repository_url)
        ]
        exact = [r for r in candidates if r.workspace_name == name]
        if exact:
            return exact[0]

        matches = [r for r in candidates if r.original_name == name]
        if not matches:
            raise ActivationFailed(f"No mirrored prompt named {name}", repository=repository_url)
        if len(matches) > 1:
            urls = ", ".join(r.repository_url or "" for r in matches)
            raise ActivationFailed(
                f"{name} exists in several repositories ({urls}); pick one with --repo"
            )
        return matches[0]

    def activate(self, name: str, repository_url: Optional[str] = None) -> str:
        record = self.find(name, repository_url)
        return self.projector.activate(record.repository_url, record.original_name)

    def deactivate(self, workspace_name: str) -> bool:
        return self.projector.deactivate(workspace_name)

    def toggle(self, record: PromptRecord) -> PromptRecord:
        """
        Flip a record's activation.

        Returns a copy of the record showing the new state. If the
        filesystem change fails, ActivationFailed propagates and nothing on
        disk changes in the ledger; callers re-read records() for the
        current state.
        """
        flipped = record.model_copy(update={"active": not record.active})
        try:
            if flipped.active:
                if record.repository_url is None:
                    raise ActivationFailed(f"{record.workspace_name} has no source repository")
                name = self.projector.activate(record.repository_url, record.original_name)
                flipped = flipped.model_copy(update={"workspace_name": name})
            else:
                self.projector.deactivate(record.workspace_name)
        except ActivationFailed:
            logger.warning(f"[activate] Toggle of {record.workspace_name} failed")
            raise
        return flipped

    # ─── Maintenance ────────────────────────────────────────

    def clear_cache(self, repository_url: Optional[str] = None) -> int:
        """
        Delete mirrored content and the projections that point into it.

        Returns the number of mirrored files removed.
        """
        cleared = [repository_url] if repository_url else self.mirror.repositories()
        for projection in self.projector.expected_active():
            if projection.repository_url in cleared:
                self.projector.deactivate(projection.workspace_name)
        removed = self.mirror.clear(repository_url)
        logger.info(f"[mirror] Cleared {removed} mirrored files")
        return removed
