"""
Errors — Exception taxonomy for sync and activation.

Per-repository failures are raised inside the sync engine and captured
into the SyncReport; they never abort sibling repositories. Activation
errors propagate to the caller.

## Usage

    from promptsync.errors import ActivationFailed

    try:
        projector.activate(url, "review.prompt.md")
    except ActivationFailed as e:
        print(f"Activation failed: {e}")
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PromptSyncError(Exception):
    """Base class for all promptsync errors."""

    def __init__(
        self,
        message: str,
        repository: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.repository = repository
        self.details = details or {}
        super().__init__(message)

    @property
    def kind(self) -> str:
        """Short error identifier used in reports (the class name)."""
        return type(self).__name__


class ConfigurationError(PromptSyncError):
    """Raised when configuration is missing or invalid."""
    pass


class UnsupportedRepository(PromptSyncError):
    """No provider recognizes the repository URL."""
    pass


class AuthRequired(PromptSyncError):
    """The provider could not authenticate for this repository."""
    pass


class NoRelevantFiles(PromptSyncError):
    """The repository tree contained no files matching the enabled categories."""
    pass


class ContentFetchFailed(PromptSyncError):
    """Fetching a file's content failed; the rest of the repository is skipped."""

    def __init__(self, message: str, path: str, repository: Optional[str] = None,
                 items_updated: int = 0):
        super().__init__(message, repository=repository, details={"path": path})
        self.path = path
        self.items_updated = items_updated


class WriteFailed(PromptSyncError):
    """Writing a single mirrored file failed."""

    def __init__(self, message: str, path: str, repository: Optional[str] = None):
        super().__init__(message, repository=repository, details={"path": path})
        self.path = path


class MirrorFileNotFound(PromptSyncError):
    """The requested file is not present in the repository mirror."""

    def __init__(self, repository: str, filename: str):
        super().__init__(
            f"{filename} not found in mirror of {repository}",
            repository=repository,
            details={"filename": filename},
        )
        self.filename = filename


class ActivationFailed(PromptSyncError):
    """Neither a symlink nor a fallback copy could be created."""
    pass


class BrokenLinkUnrecoverable(PromptSyncError):
    """A dangling symlink whose source cannot be re-attributed to a mirror."""

    def __init__(self, message: str, workspace_name: str, target: str,
                 repository: Optional[str] = None):
        super().__init__(
            message,
            repository=repository,
            details={"workspace_name": workspace_name, "target": target},
        )
        self.workspace_name = workspace_name
        self.target = target


class SyncInProgress(PromptSyncError):
    """A sync pass is already running; the trigger was dropped."""
    pass
