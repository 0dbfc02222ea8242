"""
Sync State — Last-known outcome of each repository's sync.

State is stored in <storage>/sync_status.json, next to the mirrors.
It is informational (the `status` command and summaries read it);
reconciliation never consults it.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

STATE_FILENAME = "sync_status.json"

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_UNKNOWN = "unknown"


@dataclass
class RepositoryStatus:
    """Status of one configured repository."""

    url: str
    branch: str = "main"
    status: str = STATUS_UNKNOWN  # ok, failed, unknown
    last_sync_iso: Optional[str] = None
    last_error: Optional[str] = None
    error_kind: Optional[str] = None
    items_updated: int = 0

    def mark_ok(self, items_updated: int = 0):
        self.last_sync_iso = datetime.now(timezone.utc).isoformat()
        self.status = STATUS_OK
        self.last_error = None
        self.error_kind = None
        self.items_updated = items_updated

    def mark_failed(self, error: str, error_kind: Optional[str] = None,
                    items_updated: int = 0):
        self.last_sync_iso = datetime.now(timezone.utc).isoformat()
        self.status = STATUS_FAILED
        self.last_error = error
        self.error_kind = error_kind
        self.items_updated = items_updated


@dataclass
class SyncState:
    """Complete sync state."""

    repositories: List[RepositoryStatus] = field(default_factory=list)
    last_sync_iso: Optional[str] = None
    last_summary: Optional[str] = None

    @classmethod
    def path_in(cls, storage_root: Union[str, Path]) -> Path:
        return Path(storage_root) / STATE_FILENAME

    @classmethod
    def load(cls, path: Path) -> "SyncState":
        """Load sync state from file. Missing or unreadable files give a blank state."""
        if not path.exists():
            return cls()

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return cls._from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load sync state: {e}")
            return cls()

    def save(self, path: Path):
        """Save sync state to file."""
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(self._to_dict(), f, indent=4, default=str)
        os.replace(temp_path, path)

    def get(self, url: str) -> Optional[RepositoryStatus]:
        """Get repository status by URL."""
        for r in self.repositories:
            if r.url == url:
                return r
        return None

    def ensure(self, url: str, branch: str = "main") -> RepositoryStatus:
        """Get or create the status entry for a repository."""
        existing = self.get(url)
        if existing:
            existing.branch = branch
            return existing

        status = RepositoryStatus(url=url, branch=branch)
        self.repositories.append(status)
        return status

    def retain(self, urls: List[str]) -> None:
        """Drop entries for repositories no longer configured."""
        self.repositories = [r for r in self.repositories if r.url in urls]

    @classmethod
    def _from_dict(cls, data: dict) -> "SyncState":
        repositories = [
            RepositoryStatus(
                url=r["url"],
                branch=r.get("branch", "main"),
                status=r.get("status", STATUS_UNKNOWN),
                last_sync_iso=r.get("last_sync_iso"),
                last_error=r.get("last_error"),
                error_kind=r.get("error_kind"),
                items_updated=r.get("items_updated", 0),
            )
            for r in data.get("repositories", [])
        ]
        return cls(
            repositories=repositories,
            last_sync_iso=data.get("last_sync_iso"),
            last_summary=data.get("last_summary"),
        )

    def _to_dict(self) -> dict:
        return {
            "last_sync_iso": self.last_sync_iso,
            "last_summary": self.last_summary,
            "repositories": [asdict(r) for r in self.repositories],
        }
