"""
GitHub Provider — Read repository trees and files over the REST API.

## Configuration

- GITHUB_TOKEN: Personal access token (optional for public repositories)

Without a token requests are anonymous and subject to GitHub's lower
rate limit. With a token, check_authentication() verifies it against
/user so a revoked token surfaces as AuthRequired instead of a wall of
per-file failures.
"""

from __future__ import annotations

import base64
import logging
import os
import re
from typing import Dict, List, Optional
from urllib.parse import quote

import httpx

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

API_BASE = "https://api.github.com"
DEFAULT_TIMEOUT = 15


def raise_for_response(resp: httpx.Response, what: str) -> None:
    """Map an HTTP error status to a ProviderError."""
    if resp.status_code < 400:
        return
    if resp.status_code in (401, 403):
        raise ProviderAuthError(f"{what}: HTTP {resp.status_code}")
    if resp.status_code == 404:
        raise ProviderNotFound(f"{what}: not found")
    if resp.status_code >= 500:
        raise ProviderNetworkError(f"{what}: HTTP {resp.status_code}")
    raise ProviderError(f"{what}: HTTP {resp.status_code}")


def read_json(resp: httpx.Response, what: str) -> dict:
    """Parse a JSON object body, mapping malformed payloads to ProviderError."""
    try:
        data = resp.json()
    except ValueError as e:
        raise ProviderError(f"{what}: invalid JSON response: {e}")
    if not isinstance(data, dict):
        raise ProviderError(f"{what}: unexpected response payload")
    return data


class GitHubProvider(GitProvider):
    """
    Real GitHub provider using httpx.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        api_base: str = API_BASE,
    ):
        self.token = token or os.environ.get("GITHUB_TOKEN")
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    @property
    def name(self) -> str:
        return "github"

    def _get_headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "promptsync",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _get(self, path: str, what: str, params: Optional[Dict[str, str]] = None) -> httpx.Response:
        try:
            resp = self._client.get(
                f"{self.api_base}{path}", headers=self._get_headers(), params=params
            )
        except httpx.TransportError as e:
            raise ProviderNetworkError(f"{what}: {e}")
        raise_for_response(resp, what)
        return resp

    # ─── Authentication ─────────────────────────────────────

    def check_authentication(self) -> bool:
        if not self.token:
            # Anonymous access works for public repositories
            return True
        try:
            self._get("/user", "Token check")
        except ProviderAuthError:
            logger.warning("[github] Token rejected")
            return False
        return True

    def request_authentication(self) -> bool:
        token = os.environ.get("GITHUB_TOKEN")
        if not token or token == self.token:
            logger.warning("[github] No new GITHUB_TOKEN available")
            return False
        self.token = token
        return self.check_authentication()

    # ─── Repository access ──────────────────────────────────

    def parse_repository_url(self, url: str) -> RepositoryCoordinates:
        match = re.search(r"github\.com[/:]([^/]+)/([^/?#]+)", url)
        if not match:
            raise ProviderError(f"Not a GitHub repository URL: {url}")
        repo = re.sub(r"\.git$", "", match.group(2))
        return RepositoryCoordinates(owner=match.group(1), repo=repo)

    def get_repository_tree(self, owner: str, repo: str, branch: str) -> List[TreeEntry]:
        resp = self._get(
            f"/repos/{owner}/{repo}/git/trees/{quote(branch, safe='')}",
            f"Tree {owner}/{repo}@{branch}",
            params={"recursive": "1"},
        )
        data = read_json(resp, f"Tree {owner}/{repo}@{branch}")
        if data.get("truncated"):
            logger.warning(f"[github] Tree for {owner}/{repo} was truncated by the API")
        return [
            TreeEntry(path=item["path"], type=item.get("type", "blob"))
            for item in data.get("tree", [])
        ]

    def get_file_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        resp = self._get(
            f"/repos/{owner}/{repo}/contents/{quote(path)}",
            f"Content {owner}/{repo}:{path}",
            params={"ref": branch},
        )
        data = read_json(resp, f"Content {owner}/{repo}:{path}")
        if data.get("encoding") == "base64":
            try:
                raw = base64.b64decode(data.get("content", ""))
            except ValueError as e:
                raise ProviderError(f"Content {owner}/{repo}:{path}: bad base64 payload: {e}")
            # Undecodable bytes become U+FFFD rather than failing the file
            return raw.decode("utf-8", errors="replace")
        return data.get("content", "")
