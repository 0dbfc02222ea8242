"""
Workspace Naming — Collision-free names for the flat activation directory.

A mirrored file keeps its original name unless two or more repository
mirrors hold the same filename. Then every colliding entry gets a
repository suffix, e.g. ``review@acme-prompts.prompt.md``. The decision
depends on what is on disk right now, so names are recomputed on every
call and never cached.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)

SUFFIX_SEPARATOR = "@"
FALLBACK_IDENTIFIER = "repo"


def repository_identifier(repository_url: str) -> str:
    """
    Short, readable identifier for a repository URL.

    github.com/owner/repo               -> owner-repo
    dev.azure.com/org/project/_git/repo -> org-project-repo
    anything else                       -> last two path segments joined by "-"
    """
    identifier = re.sub(r"^https?://", "", repository_url.strip())
    identifier = re.sub(r"^www\.", "", identifier)
    identifier = identifier.rstrip("/")
    identifier = re.sub(r"\.git$", "", identifier)

    if "github.com/" in identifier:
        parts = [p for p in identifier.split("github.com/", 1)[1].split("/") if p]
        if len(parts) >= 2:
            return f"{parts[0]}-{parts[1]}"

    if "dev.azure.com/" in identifier:
        parts = [p for p in identifier.split("/") if p and p != "_git"]
        if len(parts) >= 4:
            return f"{parts[1]}-{parts[2]}-{parts[3]}"

    parts = [p for p in identifier.split("/") if p]
    if len(parts) >= 2:
        return f"{parts[-2]}-{parts[-1]}"
    if parts:
        return parts[-1]
    return FALLBACK_IDENTIFIER


def split_extension(filename: str):
    """
    Split at the first dot after position 0.

    "x.prompt.md" -> ("x", ".prompt.md"); ".hidden" -> (".hidden", "")
    """
    dot = filename.find(".", 1)
    if dot <= 0:
        return filename, ""
    return filename[:dot], filename[dot:]


def suffixed_name(filename: str, identifier: str) -> str:
    base, ext = split_extension(filename)
    return f"{base}{SUFFIX_SEPARATOR}{identifier}{ext}"


def _disambiguated_identifiers(urls: Iterable[str]) -> Dict[str, str]:
    """
    Identifiers for a set of colliding repositories.

    When two URLs reduce to the same identifier, each of them is widened
    with a short hash of its full URL.
    """
    by_identifier: Dict[str, List[str]] = {}
    for url in urls:
        by_identifier.setdefault(repository_identifier(url), []).append(url)

    result: Dict[str, str] = {}
    for identifier, members in by_identifier.items():
        if len(members) == 1:
            result[members[0]] = identifier
            continue
        for url in members:
            digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:6]
            result[url] = f"{identifier}-{digest}"
    return result


def resolve(
    repository_url: str,
    filename: str,
    mirrored: Mapping[str, Iterable[str]],
) -> str:
    """
    Workspace name for one mirrored file.

    Args:
        repository_url: Owning repository.
        filename: Original filename in that repository's mirror.
        mirrored: Repository URL -> filenames currently in its mirror
                  (see RepositoryMirror.snapshot()).
    """
    holders = {url for url, names in mirrored.items() if filename in names}

    if len(holders) <= 1:
        return filename

    identifier = _disambiguated_identifiers(sorted(holders | {repository_url}))[repository_url]
    name = suffixed_name(filename, identifier)
    logger.debug(
        f"[naming] {filename} exists in {len(holders)} repositories, using {name}"
    )
    return name


def resolve_all(mirrored: Mapping[str, Iterable[str]]) -> Dict[tuple, str]:
    """Workspace names for every mirrored file: {(url, filename): name}."""
    return {
        (url, name): resolve(url, name, mirrored)
        for url, names in mirrored.items()
        for name in names
    }
