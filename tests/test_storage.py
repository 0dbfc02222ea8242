"""
Tests for the repository mirror.

These tests verify:
- Slug encoding is reversible and filesystem safe
- put() reports changes by byte comparison
- Enumeration and reverse lookup from stale paths
- Cache clear and legacy migration
"""

from pathlib import Path

import pytest

from promptsync.errors import MirrorFileNotFound, WriteFailed
from promptsync.mirror.storage import (
    RepositoryMirror,
    decode_repository_slug,
    encode_repository_slug,
    is_prompt_file,
)

REPO_A = "https://github.com/acme/prompts"
REPO_B = "https://github.com/beta/library"


class TestSlug:
    """Tests for repository slug encoding."""

    @pytest.mark.parametrize("url", [
        REPO_A,
        "https://dev.azure.com/org/My Project/_git/repo",
        "https://example.com/a?b=c&d=é",
    ])
    def test_round_trip(self, url):
        assert decode_repository_slug(encode_repository_slug(url)) == url

    def test_slug_has_no_separators_or_padding(self):
        slug = encode_repository_slug("https://github.com/a/b?x=1")
        assert "/" not in slug
        assert "\\" not in slug
        assert not slug.endswith("=")

    def test_decode_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_repository_slug("not a slug!")

    def test_decode_rejects_empty(self):
        with pytest.raises(ValueError):
            decode_repository_slug("")


class TestIsPromptFile:
    """Tests for the prompt filename filter."""

    @pytest.mark.parametrize("name,expected", [
        ("review.prompt.md", True),
        ("notes.txt", True),
        (".hidden.md", False),
        ("_draft.md", False),
        ("image.png", False),
        ("README", False),
    ])
    def test_filter(self, name, expected):
        assert is_prompt_file(name) is expected


class TestPutAndGet:
    """Tests for writing and reading mirrored files."""

    def test_put_new_file_is_changed(self, mirror):
        assert mirror.put(REPO_A, "a.md", "hello") is True
        assert mirror.get(REPO_A, "a.md") == "hello"

    def test_put_same_content_is_unchanged(self, mirror):
        mirror.put(REPO_A, "a.md", "hello")
        assert mirror.put(REPO_A, "a.md", "hello") is False

    def test_put_different_content_is_changed(self, mirror):
        mirror.put(REPO_A, "a.md", "hello")
        assert mirror.put(REPO_A, "a.md", "hello!") is True
        assert mirror.get(REPO_A, "a.md") == "hello!"

    def test_path_layout(self, mirror, storage_dir):
        path = mirror.path_for(REPO_A, "a.md")
        assert path == storage_dir / "repos" / encode_repository_slug(REPO_A) / "a.md"
        assert path.is_absolute()

    def test_get_missing_raises(self, mirror):
        with pytest.raises(MirrorFileNotFound):
            mirror.get(REPO_A, "missing.md")

    def test_put_rejects_path_in_filename(self, mirror):
        with pytest.raises(WriteFailed):
            mirror.put(REPO_A, "../escape.md", "x")

    def test_put_write_error_raises_write_failed(self, mirror, monkeypatch):
        def _fail(self, data):
            raise OSError("disk full")

        monkeypatch.setattr(Path, "write_bytes", _fail)
        with pytest.raises(WriteFailed):
            mirror.put(REPO_A, "a.md", "x")


class TestEnumeration:
    """Tests for listing mirrors."""

    def test_list_is_sorted_and_filtered(self, mirror):
        mirror.put(REPO_A, "b.md", "b")
        mirror.put(REPO_A, "a.md", "a")
        mirror.put(REPO_A, "_skip.md", "x")
        assert mirror.list(REPO_A) == ["a.md", "b.md"]

    def test_list_unknown_repository_is_empty(self, mirror):
        assert mirror.list(REPO_B) == []

    def test_repositories_skips_foreign_directories(self, mirror):
        mirror.put(REPO_A, "a.md", "a")
        (mirror.root / "not base64!").mkdir()
        assert mirror.repositories() == [REPO_A]

    def test_snapshot(self, mirror):
        mirror.put(REPO_A, "a.md", "a")
        mirror.put(REPO_B, "a.md", "a")
        mirror.put(REPO_B, "b.md", "b")
        assert mirror.snapshot() == {REPO_A: {"a.md"}, REPO_B: {"a.md", "b.md"}}

    def test_files_carry_stats(self, mirror):
        mirror.put(REPO_A, "a.md", "one\ntwo\nthree")
        [mirrored] = mirror.files()
        assert mirrored.repository_url == REPO_A
        assert mirrored.original_name == "a.md"
        assert mirrored.size == len("one\ntwo\nthree")
        assert mirrored.line_count == 3


class TestOwnerOf:
    """Tests for reverse lookup of the owning repository."""

    def test_current_path(self, mirror):
        assert RepositoryMirror.owner_of(mirror.path_for(REPO_A, "a.md")) == REPO_A

    def test_stale_root(self):
        stale = f"/old/place/repos/{encode_repository_slug(REPO_B)}/a.md"
        assert RepositoryMirror.owner_of(stale) == REPO_B

    def test_windows_separators(self):
        stale = f"C:\\Users\\me\\storage\\repos\\{encode_repository_slug(REPO_A)}\\a.md"
        assert RepositoryMirror.owner_of(stale) == REPO_A

    def test_unrelated_path(self):
        assert RepositoryMirror.owner_of("/home/me/notes/a.md") is None


class TestMaintenance:
    """Tests for cache clear and legacy migration."""

    def test_clear_one_repository(self, mirror):
        mirror.put(REPO_A, "a.md", "a")
        mirror.put(REPO_B, "b.md", "b")
        assert mirror.clear(REPO_A) == 1
        assert mirror.repositories() == [REPO_B]

    def test_clear_all(self, mirror):
        mirror.put(REPO_A, "a.md", "a")
        mirror.put(REPO_B, "b.md", "b")
        assert mirror.clear() == 2
        assert mirror.repositories() == []

    def test_migrate_legacy(self, mirror, tmp_path):
        legacy_parent = tmp_path / "prompts" / ".promptitude"
        legacy = legacy_parent / "repos"
        (legacy / encode_repository_slug(REPO_A)).mkdir(parents=True)
        (legacy / encode_repository_slug(REPO_A) / "a.md").write_text("a")

        assert mirror.migrate_legacy(legacy) is True
        assert mirror.get(REPO_A, "a.md") == "a"
        assert not legacy_parent.exists()

    def test_migrate_without_legacy_is_noop(self, mirror, tmp_path):
        assert mirror.migrate_legacy(tmp_path / "nope") is False

    def test_migrate_keeps_existing_storage(self, mirror, tmp_path):
        mirror.put(REPO_A, "a.md", "current")
        legacy = tmp_path / "legacy" / "repos"
        legacy.mkdir(parents=True)
        assert mirror.migrate_legacy(legacy) is False
        assert legacy.exists()
