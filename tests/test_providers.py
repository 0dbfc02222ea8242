"""
Tests for Git providers.

HTTP providers run against httpx.MockTransport, so no network is used.
"""

import base64
import json

import httpx
import pytest

from promptsync.providers.azure import AzureDevOpsProvider
from promptsync.providers.base import (
    ProviderAuthError,
    ProviderError,
    ProviderNetworkError,
    ProviderNotFound,
    TreeEntry,
)
from promptsync.providers.github import GitHubProvider
from promptsync.providers.mock import MockProvider
from promptsync.providers.registry import ProviderRegistry, detect_provider


def make_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestDetectProvider:
    """Tests for URL → provider kind."""

    @pytest.mark.parametrize("url,expected", [
        ("https://github.com/a/b", "github"),
        ("https://GitHub.com/a/b", "github"),
        ("https://dev.azure.com/o/p/_git/r", "azure"),
        ("https://org.visualstudio.com/p/_git/r", "azure"),
        ("https://gitlab.com/a/b", "unknown"),
    ])
    def test_detect(self, url, expected):
        assert detect_provider(url) == expected


class TestProviderRegistry:
    """Tests for provider lookup."""

    def test_unknown_url_has_no_provider(self):
        assert ProviderRegistry(factories={}).for_url("https://gitlab.com/a/b") is None

    def test_registered_instance_is_used(self):
        registry = ProviderRegistry(factories={})
        mock = MockProvider()
        registry.register("github", mock)
        assert registry.for_url("https://github.com/a/b") is mock

    def test_factory_called_once_per_kind(self):
        calls = []

        def factory():
            calls.append(1)
            return MockProvider()

        registry = ProviderRegistry(factories={"github": factory})
        first = registry.for_url("https://github.com/a/b")
        second = registry.for_url("https://github.com/c/d")
        assert first is second
        assert len(calls) == 1


class TestGitHubProvider:
    """Tests for the GitHub REST provider."""

    def test_parse_repository_url(self):
        provider = GitHubProvider(client=make_client(lambda r: httpx.Response(200)))
        coords = provider.parse_repository_url("https://github.com/acme/prompts.git")
        assert (coords.owner, coords.repo) == ("acme", "prompts")

    def test_parse_rejects_other_hosts(self):
        provider = GitHubProvider(client=make_client(lambda r: httpx.Response(200)))
        with pytest.raises(ProviderError):
            provider.parse_repository_url("https://gitlab.com/a/b")

    def test_tree(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/acme/prompts/git/trees/main"
            assert request.url.params["recursive"] == "1"
            return httpx.Response(200, json={"tree": [
                {"path": "prompts", "type": "tree"},
                {"path": "prompts/a.md", "type": "blob"},
            ]})

        provider = GitHubProvider(token="t", client=make_client(handler))
        assert provider.get_repository_tree("acme", "prompts", "main") == [
            TreeEntry("prompts", "tree"),
            TreeEntry("prompts/a.md", "blob"),
        ]

    def test_content_is_base64_decoded(self):
        encoded = base64.b64encode("Review the diff.\n".encode()).decode()

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/repos/acme/prompts/contents/prompts/a.md"
            assert request.url.params["ref"] == "dev"
            return httpx.Response(200, json={"encoding": "base64", "content": encoded})

        provider = GitHubProvider(token="t", client=make_client(handler))
        assert provider.get_file_content("acme", "prompts", "prompts/a.md", "dev") == "Review the diff.\n"

    def test_token_sent_as_bearer(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"login": "me"})

        provider = GitHubProvider(token="secret", client=make_client(handler))
        assert provider.check_authentication() is True
        assert seen["auth"] == "Bearer secret"

    def test_anonymous_is_authenticated(self, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        provider = GitHubProvider(client=make_client(lambda r: httpx.Response(500)))
        assert provider.check_authentication() is True

    def test_rejected_token(self):
        provider = GitHubProvider(token="bad", client=make_client(lambda r: httpx.Response(401)))
        assert provider.check_authentication() is False

    @pytest.mark.parametrize("status,error", [
        (401, ProviderAuthError),
        (403, ProviderAuthError),
        (404, ProviderNotFound),
        (502, ProviderNetworkError),
        (422, ProviderError),
    ])
    def test_status_mapping(self, status, error):
        provider = GitHubProvider(token="t", client=make_client(lambda r: httpx.Response(status)))
        with pytest.raises(error):
            provider.get_repository_tree("a", "b", "main")

    def test_transport_error_is_network_error(self):
        def handler(request):
            raise httpx.ConnectError("boom", request=request)

        provider = GitHubProvider(token="t", client=make_client(handler))
        with pytest.raises(ProviderNetworkError):
            provider.get_file_content("a", "b", "x.md", "main")

    def test_non_utf8_content_is_replaced(self):
        encoded = base64.b64encode("café".encode("latin-1")).decode()
        provider = GitHubProvider(token="t", client=make_client(
            lambda r: httpx.Response(200, json={"encoding": "base64", "content": encoded})
        ))
        assert provider.get_file_content("a", "b", "x.md", "main") == "caf\ufffd"

    def test_invalid_json_is_provider_error(self):
        provider = GitHubProvider(token="t", client=make_client(
            lambda r: httpx.Response(200, text="<html>maintenance</html>")
        ))
        with pytest.raises(ProviderError):
            provider.get_repository_tree("a", "b", "main")

    def test_non_object_payload_is_provider_error(self):
        provider = GitHubProvider(token="t", client=make_client(
            lambda r: httpx.Response(200, json=["not", "an", "object"])
        ))
        with pytest.raises(ProviderError):
            provider.get_file_content("a", "b", "x.md", "main")

    def test_bad_base64_is_provider_error(self):
        provider = GitHubProvider(token="t", client=make_client(
            lambda r: httpx.Response(200, json={"encoding": "base64", "content": "a"})
        ))
        with pytest.raises(ProviderError):
            provider.get_file_content("a", "b", "x.md", "main")


class TestAzureDevOpsProvider:
    """Tests for the Azure DevOps provider."""

    def test_parse_dev_azure_url(self):
        provider = AzureDevOpsProvider(token="t", client=make_client(lambda r: httpx.Response(200)))
        coords = provider.parse_repository_url("https://dev.azure.com/contoso/My%20Project/_git/prompts")
        assert (coords.owner, coords.repo) == ("contoso/My Project", "prompts")

    def test_parse_visualstudio_url(self):
        provider = AzureDevOpsProvider(token="t", client=make_client(lambda r: httpx.Response(200)))
        coords = provider.parse_repository_url("https://contoso.visualstudio.com/tools/_git/prompts")
        assert (coords.owner, coords.repo) == ("contoso/tools", "prompts")

    def test_tree(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["recursionLevel"] == "Full"
            assert request.url.params["versionDescriptor.version"] == "main"
            return httpx.Response(200, content=json.dumps({"value": [
                {"path": "/", "isFolder": True},
                {"path": "/prompts", "isFolder": True},
                {"path": "/prompts/a.md"},
            ]}))

        provider = AzureDevOpsProvider(token="t", client=make_client(handler))
        assert provider.get_repository_tree("contoso/tools", "prompts", "main") == [
            TreeEntry("prompts", "tree"),
            TreeEntry("prompts/a.md", "blob"),
        ]

    def test_content(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["path"] == "/prompts/a.md"
            assert request.url.params["includeContent"] == "true"
            return httpx.Response(200, json={"content": "hello"})

        provider = AzureDevOpsProvider(token="t", client=make_client(handler))
        assert provider.get_file_content("contoso/tools", "prompts", "prompts/a.md", "main") == "hello"

    def test_sign_in_redirect_is_auth_error(self):
        provider = AzureDevOpsProvider(token="t", client=make_client(lambda r: httpx.Response(203)))
        with pytest.raises(ProviderAuthError):
            provider.get_repository_tree("contoso/tools", "prompts", "main")

    def test_authentication_needs_pat(self, monkeypatch):
        monkeypatch.delenv("AZURE_DEVOPS_PAT", raising=False)
        provider = AzureDevOpsProvider(client=make_client(lambda r: httpx.Response(200)))
        assert provider.check_authentication() is False
        assert provider.request_authentication() is False

        monkeypatch.setenv("AZURE_DEVOPS_PAT", "pat")
        assert provider.request_authentication() is True
        assert provider.check_authentication() is True


class TestMockProvider:
    """Tests for the in-memory provider."""

    def test_tree_lists_directories_then_blobs(self):
        provider = MockProvider()
        provider.add_repository("https://github.com/a/b", {"prompts/x.md": "x"})
        assert provider.get_repository_tree("a", "b", "main") == [
            TreeEntry("prompts", "tree"),
            TreeEntry("prompts/x.md", "blob"),
        ]

    def test_missing_branch(self):
        provider = MockProvider()
        provider.add_repository("https://github.com/a/b", {"prompts/x.md": "x"})
        with pytest.raises(ProviderNotFound):
            provider.get_repository_tree("a", "b", "dev")

    def test_injected_failure(self):
        provider = MockProvider()
        provider.add_repository("https://github.com/a/b", {"prompts/x.md": "x"})
        provider.fail_paths.add("prompts/x.md")
        with pytest.raises(ProviderNetworkError):
            provider.get_file_content("a", "b", "prompts/x.md", "main")
