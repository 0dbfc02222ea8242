"""
Mock Provider — In-memory repositories for testing and dry runs.

    provider = MockProvider()
    provider.add_repository("https://github.com/acme/prompts", {
        "prompts/review.prompt.md": "Review the diff.",
    })
"""

from __future__ import annotations

import logging
import re
from typing import Dict, List, Optional, Set, Tuple

from .base import (
    GitProvider,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderNotFound,
    RepositoryCoordinates,
    TreeEntry,
)

logger = logging.getLogger(__name__)


class MockProvider(GitProvider):
    """
    Provider backed by dicts of path -> content.

    Repositories are addressed by the last two path segments of their URL,
    so any host works. Failures can be injected per path.
    """

    def __init__(self, provider_name: str = "mock", authenticated: bool = True,
                 can_authenticate: bool = True):
        self._name = provider_name
        self.authenticated = authenticated
        self.can_authenticate = can_authenticate
        self._repos: Dict[Tuple[str, str, str], Dict[str, str]] = {}
        self.fail_paths: Set[str] = set()
        self.fail_tree: Optional[ProviderError] = None
        self.content_requests: List[str] = []

    @property
    def name(self) -> str:
        return self._name

    def add_repository(self, url: str, files: Dict[str, str], branch: str = "main") -> None:
        coords = self.parse_repository_url(url)
        self._repos[(coords.owner, coords.repo, branch)] = dict(files)

    def set_file(self, url: str, path: str, content: str, branch: str = "main") -> None:
        coords = self.parse_repository_url(url)
        self._repos.setdefault((coords.owner, coords.repo, branch), {})[path] = content

    def check_authentication(self) -> bool:
        return self.authenticated

    def request_authentication(self) -> bool:
        if self.can_authenticate:
            self.authenticated = True
        return self.authenticated

    def parse_repository_url(self, url: str) -> RepositoryCoordinates:
        parts = [p for p in re.sub(r"^[a-z]+://", "", url).split("/") if p and p != "_git"]
        if len(parts) < 2:
            raise ProviderError(f"Cannot parse repository URL: {url}")
        return RepositoryCoordinates(owner=parts[-2], repo=re.sub(r"\.git$", "", parts[-1]))

    def _files(self, owner: str, repo: str, branch: str) -> Dict[str, str]:
        if not self.authenticated:
            raise ProviderAuthError("Not authenticated")
        try:
            return self._repos[(owner, repo, branch)]
        except KeyError:
            raise ProviderNotFound(f"{owner}/{repo}@{branch} not found")

    def get_repository_tree(self, owner: str, repo: str, branch: str) -> List[TreeEntry]:
        if self.fail_tree is not None:
            raise self.fail_tree
        files = self._files(owner, repo, branch)

        entries: List[TreeEntry] = []
        seen_dirs: Set[str] = set()
        for path in files:
            parts = path.split("/")
            for depth in range(1, len(parts)):
                directory = "/".join(parts[:depth])
                if directory not in seen_dirs:
                    seen_dirs.add(directory)
                    entries.append(TreeEntry(path=directory, type="tree"))
            entries.append(TreeEntry(path=path, type="blob"))
        return entries

    def get_file_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        self.content_requests.append(path)
        if path in self.fail_paths:
            raise ProviderNetworkError(f"Injected failure for {path}")
        files = self._files(owner, repo, branch)
        try:
            return files[path]
        except KeyError:
            raise ProviderNotFound(f"{path} not found in {owner}/{repo}")
