"""
Config Loader — Load settings from promptsync.yaml and PROMPTSYNC_* env vars.

Minimal config file:

    repositories:
      - https://github.com/acme/prompts
      - https://dev.azure.com/acme/tools/_git/prompts|develop
    sync_instructions: true

Repository entries are "<url>" or "<url>|<branch>"; the branch defaults
to "main". Environment variables override the file:

    PROMPTSYNC_REPOSITORIES=https://github.com/a/b,https://github.com/c/d|dev
    PROMPTSYNC_PROMPTS_DIR=~/.config/Code/User/prompts
    PROMPTSYNC_STORAGE_DIR=~/.local/share/promptsync
    PROMPTSYNC_SYNC_AGENTS / _INSTRUCTIONS / _PROMPTS = true|false
    PROMPTSYNC_DEBUG=true
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROMPTSYNC_CONFIG"
DEFAULT_CONFIG_FILE = "promptsync.yaml"
DEFAULT_BRANCH = "main"
EXTENSION_ID = "promptsync"

# Top-level directories scanned in each repository, per category
CATEGORY_PREFIXES: Dict[str, List[str]] = {
    "agents": ["agents/", "chatmodes/", "chatmode/"],
    "instructions": ["instructions/"],
    "prompts": ["prompts/"],
}

_TRUE_VALUES = ("true", "1", "yes", "on")


class RepositoryRef(BaseModel):
    """One configured repository. Identity is the URL."""

    url: str
    branch: str = DEFAULT_BRANCH

    @classmethod
    def parse(cls, entry: str) -> "RepositoryRef":
        """Parse a "<url>" or "<url>|<branch>" entry."""
        url, _, branch = entry.partition("|")
        branch = branch.strip()
        return cls(url=url.strip(), branch=branch or DEFAULT_BRANCH)

    def __str__(self) -> str:
        return f"{self.url}|{self.branch}"


def _vscode_user_dir() -> Path:
    """Platform-specific VS Code User directory."""
    home = Path.home()
    if sys.platform == "win32":
        return home / "AppData" / "Roaming" / "Code" / "User"
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "Code" / "User"
    if sys.platform.startswith("linux"):
        return home / ".config" / "Code" / "User"
    return home / ".vscode"


def default_prompts_dir() -> Path:
    return _vscode_user_dir() / "prompts"


def default_storage_dir() -> Path:
    return _vscode_user_dir() / "globalStorage" / EXTENSION_ID


class Settings(BaseModel):
    """Read-only view of the user's configuration."""

    repositories: List[str] = Field(default_factory=list)
    prompts_dir: Optional[Path] = None
    storage_dir: Optional[Path] = None

    sync_agents: bool = True
    sync_instructions: bool = False
    sync_prompts: bool = True

    debug: bool = False

    @property
    def repository_refs(self) -> List[RepositoryRef]:
        """Configured repositories in order, blanks and duplicate URLs dropped."""
        refs: List[RepositoryRef] = []
        seen = set()
        for entry in self.repositories:
            entry = (entry or "").strip()
            if not entry:
                continue
            ref = RepositoryRef.parse(entry)
            if not ref.url or ref.url in seen:
                if ref.url:
                    logger.info(f"Ignoring duplicate repository entry: {entry}")
                continue
            seen.add(ref.url)
            refs.append(ref)
        return refs

    @property
    def activation_dir(self) -> Path:
        """Flat directory the consumer reads active prompts from."""
        if self.prompts_dir:
            return Path(self.prompts_dir).expanduser()
        return default_prompts_dir()

    @property
    def storage_root(self) -> Path:
        """Root of promptsync's own storage (mirrors, ledgers, status)."""
        if self.storage_dir:
            return Path(self.storage_dir).expanduser()
        return default_storage_dir()

    def enabled_categories(self) -> List[str]:
        enabled = []
        if self.sync_agents:
            enabled.append("agents")
        if self.sync_instructions:
            enabled.append("instructions")
        if self.sync_prompts:
            enabled.append("prompts")
        return enabled

    def enabled_prefixes(self) -> List[str]:
        """Directory prefixes to sync, in category order."""
        prefixes: List[str] = []
        for category in self.enabled_categories():
            prefixes.extend(CATEGORY_PREFIXES[category])
        return prefixes


def _env_overrides() -> Dict[str, Any]:
    """Collect PROMPTSYNC_* overrides from the environment."""
    overrides: Dict[str, Any] = {}

    repos = os.environ.get("PROMPTSYNC_REPOSITORIES")
    if repos is not None:
        overrides["repositories"] = [r for r in repos.split(",") if r.strip()]

    for key, field_name in (
        ("PROMPTSYNC_PROMPTS_DIR", "prompts_dir"),
        ("PROMPTSYNC_STORAGE_DIR", "storage_dir"),
    ):
        value = os.environ.get(key)
        if value:
            overrides[field_name] = value

    for key, field_name in (
        ("PROMPTSYNC_SYNC_AGENTS", "sync_agents"),
        ("PROMPTSYNC_SYNC_INSTRUCTIONS", "sync_instructions"),
        ("PROMPTSYNC_SYNC_PROMPTS", "sync_prompts"),
        ("PROMPTSYNC_DEBUG", "debug"),
    ):
        value = os.environ.get(key)
        if value is not None:
            overrides[field_name] = value.strip().lower() in _TRUE_VALUES

    return overrides


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping; an empty file yields an empty dict."""
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {path}")
    return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """
    Load settings from a YAML file, then apply environment overrides.

    Args:
        path: Config file. Defaults to $PROMPTSYNC_CONFIG, then
              ./promptsync.yaml. A missing default file is not an error.

    Raises:
        ConfigurationError: If the file is unreadable or fails validation.
    """
    explicit = path is not None or CONFIG_ENV_VAR in os.environ
    config_path = Path(path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)).expanduser()

    data: Dict[str, Any] = {}
    if config_path.exists():
        try:
            data = load_yaml(config_path)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")
        logger.debug(f"Loaded config from {config_path}")
    elif explicit:
        raise ConfigurationError(f"Config file not found: {config_path}")

    data.update(_env_overrides())

    try:
        settings = Settings(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")

    if not settings.enabled_categories():
        logger.warning("No sync categories enabled; every repository will report no relevant files")

    return settings
