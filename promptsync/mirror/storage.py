"""
Repository Storage — On-disk mirror of each repository's prompt files.

Layout (stable, other tools rely on it):

    <storage>/repos/<slug(repository_url)>/<original filename>

The slug is the URL-safe base64 encoding of the URL without padding, so
any stored path can be traced back to the repository that owns it, even
after the storage root has moved.

## Usage

    from promptsync.mirror.storage import RepositoryMirror

    mirror = RepositoryMirror(settings.storage_root)
    changed = mirror.put(url, "review.prompt.md", content)
    target = mirror.path_for(url, "review.prompt.md")
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from ..errors import MirrorFileNotFound, WriteFailed

logger = logging.getLogger(__name__)

REPOS_DIRNAME = "repos"
ALLOWED_EXTENSIONS = (".md", ".txt")


def is_prompt_file(filename: str) -> bool:
    """Visible .md/.txt files; names starting with "." or "_" are skipped."""
    return (
        not filename.startswith(".")
        and not filename.startswith("_")
        and filename.endswith(ALLOWED_EXTENSIONS)
    )


def encode_repository_slug(url: str) -> str:
    """Encode a repository URL into a reversible, filesystem-safe slug."""
    return base64.urlsafe_b64encode(url.encode("utf-8")).decode("ascii").rstrip("=")


def decode_repository_slug(slug: str) -> str:
    """
    Decode a slug produced by encode_repository_slug.

    Raises:
        ValueError: If the slug is not valid base64url or not UTF-8.
    """
    padded = slug + "=" * (-len(slug) % 4)
    try:
        raw = base64.b64decode(padded, altchars=b"-_", validate=True)
        url = raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Not a repository slug: {slug!r} ({e})")
    if not url:
        raise ValueError(f"Empty repository slug: {slug!r}")
    return url


@dataclass
class MirroredFile:
    """One file in one repository's mirror."""

    repository_url: str
    original_name: str
    path: Path
    content: str
    size: int
    mtime: datetime

    @property
    def line_count(self) -> int:
        return len(self.content.split("\n"))


class RepositoryMirror:
    """
    Durable per-repository store of the latest fetched content.

    Every method re-reads the filesystem; nothing is cached.
    """

    def __init__(self, storage_root: Union[str, Path]):
        self.storage_root = Path(os.path.abspath(os.path.expanduser(str(storage_root))))
        self.root = self.storage_root / REPOS_DIRNAME

    # ─── Paths ──────────────────────────────────────────────

    def repo_dir(self, repository_url: str) -> Path:
        return self.root / encode_repository_slug(repository_url)

    def path_for(self, repository_url: str, filename: str) -> Path:
        """Stable absolute path of a mirrored file (used as symlink target)."""
        return self.repo_dir(repository_url) / filename

    # ─── Read / Write ───────────────────────────────────────

    def put(self, repository_url: str, filename: str, content: str) -> bool:
        """
        Store a file's content.

        Returns True if the file was absent or its bytes differ from the
        stored copy. An unreadable stored copy counts as changed.

        Raises:
            WriteFailed: If the file cannot be written.
        """
        if not filename or filename in (".", "..") or "/" in filename or "\\" in filename:
            raise WriteFailed(f"Invalid mirror filename: {filename!r}", path=filename,
                              repository=repository_url)

        path = self.path_for(repository_url, filename)
        data = content.encode("utf-8")

        try:
            if path.read_bytes() == data:
                logger.debug(f"[mirror] Unchanged: {path}")
                return False
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.debug(f"[mirror] Could not read {path}, rewriting: {e}")

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise WriteFailed(f"Failed to write {path}: {e}", path=str(path),
                              repository=repository_url)

        logger.debug(f"[mirror] Updated: {path}")
        return True

    def get(self, repository_url: str, filename: str) -> str:
        """
        Read a mirrored file.

        Raises:
            MirrorFileNotFound: If the file is not in the mirror.
        """
        path = self.path_for(repository_url, filename)
        try:
            return path.read_bytes().decode("utf-8")
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            raise MirrorFileNotFound(repository_url, filename)

    def exists(self, repository_url: str, filename: str) -> bool:
        return self.path_for(repository_url, filename).is_file()

    # ─── Enumeration ────────────────────────────────────────

    def list(self, repository_url: str) -> List[str]:
        """Prompt filenames currently mirrored for a repository."""
        repo_dir = self.repo_dir(repository_url)
        if not repo_dir.is_dir():
            return []
        return sorted(
            p.name for p in repo_dir.iterdir()
            if p.is_file() and is_prompt_file(p.name)
        )

    def repositories(self) -> List[str]:
        """Repository URLs that have a mirror directory on disk."""
        if not self.root.is_dir():
            return []

        urls = []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir():
                continue
            try:
                urls.append(decode_repository_slug(entry.name))
            except ValueError as e:
                logger.warning(f"[mirror] Skipping unrecognized directory {entry.name}: {e}")
        return urls

    def snapshot(self) -> Dict[str, Set[str]]:
        """Map of repository URL to the filenames its mirror holds right now."""
        return {url: set(self.list(url)) for url in self.repositories()}

    def files(self) -> List[MirroredFile]:
        """Every mirrored file across all repositories."""
        result = []
        for url in self.repositories():
            for name in self.list(url):
                path = self.path_for(url, name)
                try:
                    stats = path.stat()
                    content = path.read_bytes().decode("utf-8", errors="replace")
                except OSError as e:
                    # Removed between listing and reading
                    logger.debug(f"[mirror] Skipping {path}: {e}")
                    continue
                result.append(MirroredFile(
                    repository_url=url,
                    original_name=name,
                    path=path,
                    content=content,
                    size=stats.st_size,
                    mtime=datetime.fromtimestamp(stats.st_mtime, tz=timezone.utc),
                ))
        return result

    # ─── Reverse lookup ─────────────────────────────────────

    @staticmethod
    def owner_of(target_path: Union[str, Path]) -> Optional[str]:
        """
        Recover the repository URL from a mirror path.

        Works on stale paths from an older storage root and on
        Windows-separated paths: the segment after the last "repos"
        marker that decodes as a slug wins.
        """
        parts = [p for p in str(target_path).replace("\\", "/").split("/") if p]
        for index in range(len(parts) - 2, -1, -1):
            if parts[index] != REPOS_DIRNAME:
                continue
            try:
                return decode_repository_slug(parts[index + 1])
            except ValueError:
                continue
        return None

    # ─── Maintenance ────────────────────────────────────────

    def clear(self, repository_url: Optional[str] = None) -> int:
        """
        Delete mirrored content (one repository, or all).

        Returns the number of files removed.
        """
        targets = [self.repo_dir(repository_url)] if repository_url else (
            [p for p in self.root.iterdir() if p.is_dir()] if self.root.is_dir() else []
        )

        removed = 0
        for repo_dir in targets:
            if not repo_dir.is_dir():
                continue
            removed += sum(1 for p in repo_dir.rglob("*") if p.is_file())
            shutil.rmtree(repo_dir)
            logger.info(f"[mirror] Cleared {repo_dir.name}")
        return removed

    def migrate_legacy(self, legacy_root: Union[str, Path]) -> bool:
        """
        Move a mirror tree from an older location into this storage root.

        Tries a rename first, then copy + delete. The emptied parent of the
        legacy tree is removed. Returns True if anything was migrated.
        """
        legacy = Path(legacy_root)
        if not legacy.is_dir():
            logger.debug("[mirror] No legacy storage to migrate")
            return False
        if self.root.exists():
            logger.info(f"[mirror] Storage already at {self.root}, leaving {legacy} in place")
            return False

        logger.info(f"[mirror] Migrating repository storage {legacy} → {self.root}")
        self.root.parent.mkdir(parents=True, exist_ok=True)
        try:
            legacy.rename(self.root)
        except OSError as e:
            logger.warning(f"[mirror] Rename failed ({e}), copying instead")
            shutil.copytree(legacy, self.root)
            shutil.rmtree(legacy)

        parent = legacy.parent
        try:
            parent.rmdir()
            logger.info(f"[mirror] Removed empty {parent}")
        except OSError:
            logger.debug(f"[mirror] Left {parent} in place (not empty)")
        return True
