"""
Prompt Catalog — Merge the mirrors and the activation directory into records.

Two sources feed the catalog:

- every file in every repository mirror (origin "repository")
- every prompt file in the activation directory (origin "workspace")

A workspace entry that is just the projection of a mirrored file is
folded into that file's record, so each (original name, repository)
pair appears once. What remains on the workspace side is the user's own
files and links we can no longer match to a mirrored file.
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List

from ..activation.projector import ActivationProjector
from ..mirror import naming
from ..mirror.storage import RepositoryMirror, is_prompt_file
from .models import CATEGORIES, PromptRecord

logger = logging.getLogger(__name__)

DESCRIPTION_LIMIT = 100
NO_DESCRIPTION = "No description available"

_FRONT_MATTER = re.compile(r"^---\s*\n([\s\S]*?)\n---")
_FRONT_MATTER_BLOCK = re.compile(r"^---\s*\n[\s\S]*?\n---\s*\n")
_DESCRIPTION_FIELD = re.compile(
    r"""description:\s*['"]([^'"]+)['"]|description:\s*([^\n]+)"""
)


def determine_category(filename: str) -> str:
    """Category from filename substrings: agents, instructions or prompts."""
    lowered = filename.lower()
    if "agent" in lowered or "chatmode" in lowered or "chat-mode" in lowered:
        return "agents"
    if "instruction" in lowered or "guide" in lowered:
        return "instructions"
    return "prompts"


def extract_description(content: str) -> str:
    """
    Short description of a prompt.

    The front-matter "description:" field wins; otherwise the first body
    line that is not a heading or comment, cut to 100 characters.
    """
    match = _FRONT_MATTER.match(content)
    if match:
        field_match = _DESCRIPTION_FIELD.search(match.group(1))
        if field_match:
            description = (field_match.group(1) or field_match.group(2) or "").strip()
            if description:
                return description

    body = _FRONT_MATTER_BLOCK.sub("", content, count=1)
    for line in body.split("\n"):
        line = line.strip()
        if not line or line.startswith(("#", "//", "/*")):
            continue
        if len(line) > DESCRIPTION_LIMIT:
            return line[:DESCRIPTION_LIMIT] + "..."
        return line

    return NO_DESCRIPTION


def _line_count(content: str) -> int:
    return len(content.split("\n"))


class PromptCatalog:
    """Read-only, recomputed view over mirrors and the activation directory."""

    def __init__(self, mirror: RepositoryMirror, projector: ActivationProjector):
        self.mirror = mirror
        self.projector = projector

    def records(self) -> List[PromptRecord]:
        """All prompts, repository-origin first, then workspace-only entries."""
        snapshot = self.mirror.snapshot()
        records: Dict[tuple, PromptRecord] = {}

        for mirrored in self.mirror.files():
            record = PromptRecord(
                original_name=mirrored.original_name,
                workspace_name=naming.resolve(
                    mirrored.repository_url, mirrored.original_name, snapshot
                ),
                repository_url=mirrored.repository_url,
                type=determine_category(mirrored.original_name),
                active=self.projector.is_active(
                    mirrored.repository_url, mirrored.original_name
                ),
                size=mirrored.size,
                line_count=mirrored.line_count,
                description=extract_description(mirrored.content),
                origin="repository",
            )
            records[record.key] = record

        for record in self._workspace_records():
            if record.key in records:
                continue
            records[record.key] = record

        logger.debug(f"[catalog] Built {len(records)} records")
        return list(records.values())

    def _workspace_records(self) -> List[PromptRecord]:
        result = []
        for entry in self.projector.entries():
            if not is_prompt_file(entry.name):
                continue
            if entry.is_dir():
                continue

            projection = self.projector.projection(entry.name)
            # A dangling link names its source but projects nothing
            live = entry.exists()

            try:
                content = entry.read_bytes().decode("utf-8", errors="replace")
                size = entry.stat().st_size
            except OSError:
                # Broken symlink
                content, size = "", 0

            original_name = projection.original_name if projection else entry.name
            result.append(PromptRecord(
                original_name=original_name,
                workspace_name=entry.name,
                repository_url=projection.repository_url if projection else None,
                type=determine_category(original_name),
                active=projection is not None and live,
                size=size,
                line_count=_line_count(content),
                description=extract_description(content),
                origin="workspace",
            ))
        return result

    def by_category(self) -> Dict[str, List[PromptRecord]]:
        """Records grouped by category, each group sorted by workspace name."""
        groups: Dict[str, List[PromptRecord]] = {category: [] for category in CATEGORIES}
        for record in self.records():
            groups[record.type].append(record)
        for group in groups.values():
            group.sort(key=lambda r: r.workspace_name.lower())
        return groups

    def statistics(self) -> Dict[str, object]:
        """Active and total counts, overall and per category."""
        records = self.records()
        per_category = {}
        for category in CATEGORIES:
            members = [r for r in records if r.type == category]
            per_category[category] = {
                "active": sum(1 for r in members if r.active),
                "total": len(members),
            }
        return {
            "active": sum(1 for r in records if r.active),
            "total": len(records),
            "categories": per_category,
        }
