"""
Activation Ledger — Persisted record of what the user activated.

Stored in <storage>/activations.json:

    {
      "version": 1,
      "activations": {
        "review.prompt.md": {
          "repository_url": "https://github.com/acme/prompts",
          "original_name": "review.prompt.md",
          "kind": "symlink"
        }
      }
    }

The ledger is intent, not truth: the activation directory is always
re-read, and the ledger only answers "what should be there" (to restore
manually deleted entries) and "which plain files are ours" (copies made
where symlinks are denied).
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "activations.json"
LEDGER_VERSION = 1

KIND_SYMLINK = "symlink"
KIND_COPY = "copy"


@dataclass(frozen=True)
class ActiveProjection:
    """One entry of the activation directory and the mirrored file behind it."""

    workspace_name: str
    kind: str  # symlink | copy
    repository_url: str
    original_name: str

    @property
    def is_copy(self) -> bool:
        return self.kind == KIND_COPY


class ActivationLedger:
    """JSON-backed map of workspace name -> ActiveProjection."""

    def __init__(self, storage_root: Union[str, Path]):
        self.path = Path(storage_root) / LEDGER_FILENAME

    def load(self) -> Dict[str, ActiveProjection]:
        """Read the ledger. A missing or corrupt file reads as empty."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            entries = data.get("activations", {})
            return {
                name: ActiveProjection(
                    workspace_name=name,
                    kind=entry.get("kind", KIND_SYMLINK),
                    repository_url=entry["repository_url"],
                    original_name=entry["original_name"],
                )
                for name, entry in entries.items()
            }
        except (OSError, ValueError, KeyError, AttributeError) as e:
            logger.error(f"Failed to load activation ledger {self.path}: {e}")
            return {}

    def _save(self, entries: Dict[str, ActiveProjection]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": LEDGER_VERSION,
            "activations": {
                name: {k: v for k, v in asdict(p).items() if k != "workspace_name"}
                for name, p in sorted(entries.items())
            },
        }

        # Write to temp file first for atomicity
        temp_path = self.path.with_suffix(".tmp")
        with temp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=4)
            f.write("\n")
        os.replace(temp_path, self.path)

    def get(self, workspace_name: str) -> Optional[ActiveProjection]:
        return self.load().get(workspace_name)

    def record(self, projection: ActiveProjection) -> None:
        entries = self.load()
        if entries.get(projection.workspace_name) == projection:
            return
        entries[projection.workspace_name] = projection
        self._save(entries)

    def remove(self, workspace_name: str) -> bool:
        entries = self.load()
        if workspace_name not in entries:
            return False
        del entries[workspace_name]
        self._save(entries)
        return True
