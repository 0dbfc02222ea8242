"""
Provider Base Class — Interface for remote Git hosting APIs.

The sync engine only talks to this interface. Providers fetch a
repository's file tree and individual file contents; authentication
flows stay inside the provider.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List


class ProviderError(Exception):
    """Base class for provider failures."""
    pass


class ProviderNotFound(ProviderError):
    """Repository, branch or path does not exist."""
    pass


class ProviderAuthError(ProviderError):
    """Credentials missing, expired or revoked."""
    pass


class ProviderNetworkError(ProviderError):
    """Transport-level failure (DNS, timeout, connection reset, 5xx)."""
    pass


@dataclass(frozen=True)
class RepositoryCoordinates:
    """Provider-specific address of a repository."""

    owner: str
    repo: str


@dataclass(frozen=True)
class TreeEntry:
    """One entry of a repository tree."""

    path: str
    type: str  # "blob" or "tree"

    @property
    def is_blob(self) -> bool:
        return self.type == "blob"


class GitProvider(ABC):
    """
    Abstract base class for all Git providers.

    Methods raise ProviderError subclasses; they never return partial data.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The provider identifier (e.g., 'github', 'azure')."""
        pass

    @abstractmethod
    def check_authentication(self) -> bool:
        """True if requests can be made with the current credentials."""
        pass

    @abstractmethod
    def request_authentication(self) -> bool:
        """Try to obtain credentials. Returns True on success."""
        pass

    @abstractmethod
    def parse_repository_url(self, url: str) -> RepositoryCoordinates:
        """Split a repository URL into provider coordinates."""
        pass

    @abstractmethod
    def get_repository_tree(self, owner: str, repo: str, branch: str) -> List[TreeEntry]:
        """Full recursive file tree at a branch, in provider order."""
        pass

    @abstractmethod
    def get_file_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        """Text content of one file at a branch."""
        pass
