"""
Azure DevOps Provider — Read repository trees and files via the Git Items API.

## Configuration

- AZURE_DEVOPS_PAT: Personal access token with Code (Read) scope

Repository URLs look like:

    https://dev.azure.com/{org}/{project}/_git/{repo}
    https://{org}.visualstudio.com/{project}/_git/{repo}

The owner coordinate is "{org}/{project}".
"""

from __future__ import annotations

import logging
import os
import re
from typing import Dict, List, Optional
from urllib.parse import unquote

import httpx

from .base import (
    GitProvider,
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    RepositoryCoordinates,
    TreeEntry,
)
from .github import DEFAULT_TIMEOUT, raise_for_response, read_json

logger = logging.getLogger(__name__)

API_BASE = "https://dev.azure.com"
API_VERSION = "7.0"


class AzureDevOpsProvider(GitProvider):
    """Azure DevOps Repos provider using httpx and a PAT."""

    def __init__(
        self,
        token: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        api_base: str = API_BASE,
    ):
        self.token = token or os.environ.get("AZURE_DEVOPS_PAT")
        self.api_base = api_base.rstrip("/")
        self._client = client or httpx.Client(timeout=DEFAULT_TIMEOUT)

    @property
    def name(self) -> str:
        return "azure"

    def _auth(self) -> Optional[httpx.BasicAuth]:
        if not self.token:
            return None
        return httpx.BasicAuth("", self.token)

    def _items(self, owner: str, repo: str, params: Dict[str, str], what: str) -> httpx.Response:
        query = {
            "versionDescriptor.versionType": "branch",
            "api-version": API_VERSION,
        }
        query.update(params)
        url = f"{self.api_base}/{owner}/_apis/git/repositories/{repo}/items"
        try:
            resp = self._client.get(url, params=query, auth=self._auth())
        except httpx.TransportError as e:
            raise ProviderNetworkError(f"{what}: {e}")
        # Azure answers an unauthenticated request with a 203 sign-in page
        if resp.status_code == 203:
            raise ProviderAuthError(f"{what}: redirected to sign-in")
        raise_for_response(resp, what)
        return resp

    # ─── Authentication ─────────────────────────────────────

    def check_authentication(self) -> bool:
        return bool(self.token)

    def request_authentication(self) -> bool:
        token = os.environ.get("AZURE_DEVOPS_PAT")
        if not token:
            logger.warning("[azure] AZURE_DEVOPS_PAT is not set")
            return False
        self.token = token
        return True

    # ─── Repository access ──────────────────────────────────

    def parse_repository_url(self, url: str) -> RepositoryCoordinates:
        match = re.search(r"dev\.azure\.com/([^/]+)/([^/]+)/_git/([^/?#]+)", url)
        if match:
            org, project, repo = match.groups()
        else:
            match = re.search(r"([^/.]+)\.visualstudio\.com/([^/]+)/_git/([^/?#]+)", url)
            if not match:
                raise ProviderError(f"Not an Azure DevOps repository URL: {url}")
            org, project, repo = match.groups()
        return RepositoryCoordinates(owner=f"{org}/{unquote(project)}", repo=unquote(repo))

    def get_repository_tree(self, owner: str, repo: str, branch: str) -> List[TreeEntry]:
        resp = self._items(
            owner, repo,
            {"recursionLevel": "Full", "versionDescriptor.version": branch},
            f"Tree {owner}/{repo}@{branch}",
        )
        entries = []
        for item in read_json(resp, f"Tree {owner}/{repo}@{branch}").get("value", []):
            path = item.get("path", "").lstrip("/")
            if not path:
                continue
            kind = "tree" if item.get("isFolder") else "blob"
            entries.append(TreeEntry(path=path, type=kind))
        return entries

    def get_file_content(self, owner: str, repo: str, path: str, branch: str) -> str:
        resp = self._items(
            owner, repo,
            {
                "path": "/" + path.lstrip("/"),
                "versionDescriptor.version": branch,
                "includeContent": "true",
            },
            f"Content {owner}/{repo}:{path}",
        )
        return read_json(resp, f"Content {owner}/{repo}:{path}").get("content", "")
