"""
Activation Projector — Maintain the flat directory of active prompts.

Each active prompt is a symlink from <activation_dir>/<workspace name>
to its file in the repository mirror. Where the OS denies symlink
creation (Windows without developer mode), the content is copied into a
plain file instead and the copy is recorded in the activation ledger;
that is the only way a plain file in the directory counts as ours.

The directory is shared with the user and the consumer, so every routine
re-reads it and treats "expected but missing" and "present but foreign"
as ordinary outcomes.

## Usage

    projector = ActivationProjector(settings.activation_dir, mirror, ledger)
    name = projector.activate(url, "review.prompt.md")
    projector.deactivate(name)
"""

from __future__ import annotations

import errno
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..errors import ActivationFailed, BrokenLinkUnrecoverable
from ..mirror import naming
from ..mirror.storage import RepositoryMirror
from .ledger import KIND_COPY, KIND_SYMLINK, ActivationLedger, ActiveProjection

logger = logging.getLogger(__name__)

# ERROR_PRIVILEGE_NOT_HELD
_WINERROR_PRIVILEGE = 1314


def symlink_denied(error: BaseException) -> bool:
    """True if a symlink failure means "not permitted here" rather than a real fault."""
    if isinstance(error, (PermissionError, NotImplementedError)):
        return True
    if getattr(error, "winerror", None) == _WINERROR_PRIVILEGE:
        return True
    return isinstance(error, OSError) and error.errno in (errno.EPERM, errno.EACCES)


def _normalize(path: str) -> str:
    return os.path.normcase(os.path.normpath(path.replace("\\", "/")))


@dataclass
class RepairReport:
    """Outcome of a broken-link scan."""

    repaired: List[str] = field(default_factory=list)
    unrecoverable: List[BrokenLinkUnrecoverable] = field(default_factory=list)


@dataclass
class CleanupReport:
    """Outcome of an orphan cleanup."""

    removed: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class ActivationProjector:
    """Projects activation state onto the activation directory."""

    def __init__(
        self,
        activation_dir: Union[str, Path],
        mirror: RepositoryMirror,
        ledger: ActivationLedger,
    ):
        self.activation_dir = Path(os.path.abspath(os.path.expanduser(str(activation_dir))))
        self.mirror = mirror
        self.ledger = ledger

    # ─── Paths & names ──────────────────────────────────────

    def target_path(self, workspace_name: str) -> Path:
        return self.activation_dir / workspace_name

    def workspace_name(self, repository_url: str, original_name: str) -> str:
        return naming.resolve(repository_url, original_name, self.mirror.snapshot())

    def entries(self) -> List[Path]:
        """Visible entries of the activation directory, sorted by name."""
        if not self.activation_dir.is_dir():
            return []
        return sorted(
            (p for p in self.activation_dir.iterdir() if not p.name.startswith(".")),
            key=lambda p: p.name,
        )

    # ─── Low-level projection ───────────────────────────────

    def _remove_existing(self, target: Path) -> None:
        if not os.path.lexists(target):
            return
        if target.is_dir() and not target.is_symlink():
            raise ActivationFailed(f"A directory is in the way at {target}")
        logger.debug(f"[activate] Target already exists, removing: {target}")
        try:
            target.unlink()
        except FileNotFoundError:
            pass

    def _project(self, source: Path, target: Path) -> str:
        """Create a symlink (or fallback copy) at target. Returns the kind used."""
        self.activation_dir.mkdir(parents=True, exist_ok=True)
        self._remove_existing(target)

        try:
            os.symlink(source, target)
            logger.info(f"[activate] Created symlink: {target.name} → {source}")
            kind = KIND_SYMLINK
        except (OSError, NotImplementedError) as e:
            if not symlink_denied(e):
                raise ActivationFailed(f"Failed to create symlink {target}: {e}")
            logger.info(f"[activate] Symlink not permitted, copying instead: {target.name}")
            try:
                target.write_bytes(source.read_bytes())
            except OSError as copy_error:
                raise ActivationFailed(
                    f"Failed to copy {source} → {target}: {copy_error}"
                )
            kind = KIND_COPY

        if not target.exists():
            raise ActivationFailed(f"Failed to create file at: {target}")
        return kind

    # ─── Activate / Deactivate ──────────────────────────────

    def activate(self, repository_url: str, original_name: str) -> str:
        """
        Project one mirrored file into the activation directory.

        An existing entry under the same workspace name is replaced.
        Returns the workspace name used.

        Raises:
            ActivationFailed: If the source is missing or neither a symlink
                nor a copy could be created.
        """
        source = self.mirror.path_for(repository_url, original_name)
        if not source.is_file():
            raise ActivationFailed(
                f"Source file does not exist: {source}", repository=repository_url
            )

        name = self.workspace_name(repository_url, original_name)
        kind = self._project(source, self.target_path(name))

        self.ledger.record(ActiveProjection(
            workspace_name=name,
            kind=kind,
            repository_url=repository_url,
            original_name=original_name,
        ))
        logger.info(
            f"[activate] Activated {original_name} as {name}",
            extra={"repository": repository_url, "workspace_name": name},
        )
        return name

    def deactivate(self, workspace_name: str) -> bool:
        """
        Remove an active entry.

        Symlinks and ledger-recorded copies are deleted; any other plain
        file is left alone. Returns True if something was removed.
        """
        target = self.target_path(workspace_name)
        recorded = self.ledger.get(workspace_name)

        if not os.path.lexists(target):
            logger.debug(f"[activate] Nothing to deactivate at {target}")
            self.ledger.remove(workspace_name)
            return False

        if target.is_symlink() or (recorded is not None and recorded.is_copy and target.is_file()):
            try:
                target.unlink()
            except FileNotFoundError:
                pass
            self.ledger.remove(workspace_name)
            logger.info(f"[activate] Deactivated {workspace_name}")
            return True

        logger.warning(f"[activate] {workspace_name} is not a link or managed copy, leaving it")
        self.ledger.remove(workspace_name)
        return False

    # ─── Provenance ─────────────────────────────────────────

    def projection(self, workspace_name: str) -> Optional[ActiveProjection]:
        """
        Where an activation-directory entry comes from, or None if foreign.

        Symlinks are attributed through their target path (works for stale
        targets too); plain files only through a ledger copy record.
        """
        target = self.target_path(workspace_name)

        if target.is_symlink():
            try:
                link = os.readlink(target)
            except OSError:
                return None
            repository_url = self.mirror.owner_of(link)
            if repository_url is None:
                return None
            original_name = link.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]
            return ActiveProjection(
                workspace_name=workspace_name,
                kind=KIND_SYMLINK,
                repository_url=repository_url,
                original_name=original_name,
            )

        if target.is_file():
            recorded = self.ledger.get(workspace_name)
            if recorded is not None and recorded.is_copy:
                return recorded

        return None

    def _points_at(self, target: Path, source: Path) -> bool:
        try:
            link = os.readlink(target)
        except OSError:
            return False
        if not os.path.isabs(link):
            link = os.path.join(str(target.parent), link)
        return _normalize(link) == _normalize(str(source))

    def _same_source(self, workspace_name: str, expected: ActiveProjection) -> bool:
        current = self.projection(workspace_name)
        return current is not None and (
            current.repository_url == expected.repository_url
            and current.original_name == expected.original_name
        )

    def is_active(self, repository_url: str, original_name: str) -> bool:
        """True if the activation directory holds a projection of this exact file."""
        name = self.workspace_name(repository_url, original_name)
        target = self.target_path(name)
        source = self.mirror.path_for(repository_url, original_name)

        if target.is_symlink():
            return self._points_at(target, source)

        if target.is_file():
            recorded = self.ledger.get(name)
            return (
                recorded is not None
                and recorded.is_copy
                and recorded.repository_url == repository_url
                and recorded.original_name == original_name
            )

        return False

    # ─── Self-healing ───────────────────────────────────────

    def reconcile_broken_links(self) -> RepairReport:
        """
        Re-point dangling symlinks at the current mirror location.

        The owning repository is decoded from the stale target. Links whose
        owner is unknown, or whose file is no longer mirrored, are left in
        place and reported.
        """
        report = RepairReport()

        for entry in self.entries():
            if not entry.is_symlink() or entry.exists():
                continue

            try:
                link = os.readlink(entry)
            except OSError as e:
                logger.warning(f"[repair] Cannot read link {entry.name}: {e}")
                continue

            logger.warning(f"[repair] Found broken symlink: {entry.name} → {link}")
            repository_url = self.mirror.owner_of(link)
            original_name = link.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]

            if repository_url is None:
                reason = f"Cannot fix broken symlink {entry.name}: could not determine repository"
            elif not self.mirror.exists(repository_url, original_name):
                reason = (
                    f"Cannot fix broken symlink {entry.name}: "
                    f"{original_name} is no longer mirrored for {repository_url}"
                )
            else:
                source = self.mirror.path_for(repository_url, original_name)
                try:
                    kind = self._project(source, entry)
                except ActivationFailed as e:
                    reason = f"Cannot fix broken symlink {entry.name}: {e}"
                else:
                    self.ledger.record(ActiveProjection(
                        workspace_name=entry.name,
                        kind=kind,
                        repository_url=repository_url,
                        original_name=original_name,
                    ))
                    report.repaired.append(entry.name)
                    logger.info(f"[repair] Fixed broken symlink: {entry.name}")
                    continue

            logger.warning(f"[repair] {reason}")
            report.unrecoverable.append(BrokenLinkUnrecoverable(
                reason, workspace_name=entry.name, target=link, repository=repository_url,
            ))

        if report.repaired:
            logger.info(f"[repair] Fixed {len(report.repaired)} broken symlinks")
        return report

    def expected_active(self) -> List[ActiveProjection]:
        """
        The set of projections that should exist.

        Ledger entries (intent) plus any link in the directory that points
        into a mirror but was never recorded.
        """
        expected = dict(self.ledger.load())

        for entry in self.entries():
            if entry.name in expected or not entry.is_symlink():
                continue
            projection = self.projection(entry.name)
            if projection is not None:
                expected[entry.name] = projection

        return [expected[name] for name in sorted(expected)]

    def recreate_missing_active(
        self, expected: Optional[Iterable[ActiveProjection]] = None
    ) -> List[str]:
        """
        Restore expected projections that are missing or misnamed.

        A projection is re-activated when its entry is absent (e.g. deleted
        by hand) or when its workspace name changed because a collision
        appeared or disappeared. Returns the workspace names created.
        """
        if expected is None:
            expected = self.expected_active()

        recreated: List[str] = []
        for projection in expected:
            if not self.mirror.exists(projection.repository_url, projection.original_name):
                logger.debug(
                    f"[repair] {projection.original_name} no longer mirrored, "
                    f"not restoring {projection.workspace_name}"
                )
                continue

            current_name = self.workspace_name(projection.repository_url, projection.original_name)
            target = self.target_path(current_name)

            try:
                if current_name != projection.workspace_name:
                    logger.info(
                        f"[repair] Renaming {projection.workspace_name} → {current_name}"
                    )
                    if self._same_source(projection.workspace_name, projection):
                        self.deactivate(projection.workspace_name)
                    else:
                        self.ledger.remove(projection.workspace_name)
                elif target.exists() and self.is_active(
                        projection.repository_url, projection.original_name):
                    continue
                if os.path.lexists(target) and not target.is_symlink() \
                        and not self._same_source(current_name, projection):
                    logger.warning(
                        f"[repair] {current_name} is occupied by a file we did not create, skipping"
                    )
                    continue

                name = self.activate(projection.repository_url, projection.original_name)
                recreated.append(name)
                logger.debug(f"[repair] Recreated {projection.original_name} as {name}")
            except (ActivationFailed, OSError) as e:
                logger.warning(f"[repair] Failed to recreate {projection.workspace_name}: {e}")

        if recreated:
            logger.info(f"[repair] Recreated {len(recreated)} missing active entries")
        else:
            logger.debug("[repair] All active entries are present")
        return recreated

    def cleanup_orphans(self) -> CleanupReport:
        """
        Remove stray full copies of mirrored files.

        A plain file whose name matches mirrored content (an original name
        or a current workspace name) is removed unless the ledger records it
        as an active copy whose source is still mirrored. Other plain files
        belong to the user and are kept.
        """
        report = CleanupReport()

        snapshot = self.mirror.snapshot()
        mirrored_names = {name for names in snapshot.values() for name in names}
        mirrored_names.update(naming.resolve_all(snapshot).values())
        ledger = self.ledger.load()

        for entry in self.entries():
            if entry.is_symlink() or not entry.is_file():
                continue
            if entry.name not in mirrored_names:
                logger.debug(f"[cleanup] Keeping user file: {entry.name}")
                continue

            recorded = ledger.get(entry.name)
            if recorded is not None and recorded.is_copy and self.mirror.exists(
                    recorded.repository_url, recorded.original_name):
                logger.debug(f"[cleanup] Keeping active copy: {entry.name}")
                continue

            try:
                entry.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                message = f"Failed to remove {entry.name}: {e}"
                logger.warning(f"[cleanup] {message}")
                report.errors.append(message)
                continue
            report.removed.append(entry.name)
            logger.info(f"[cleanup] Removed orphaned file: {entry.name}")

        return report
