"""Tests for source parsing and clone URL resolution."""

from pathlib import Path

import pytest
from agntc import SourceError
from agntc import parse_source
from agntc import resolve_clone_url
from agntc.sources import build_source_from_key
from agntc.sources import default_clone_url_for
from agntc.sources import is_local_key
from agntc.sources import skill_name_for
from agntc.sources import source_dir_from_key


class TestShorthand:
    def test_owner_repo(self):
        source = parse_source("owner/repo")

        assert source.kind == "github-shorthand"
        assert source.manifest_key == "owner/repo"
        assert source.ref is None
        assert source.clone_url == "https://github.com/owner/repo.git"

    def test_ref_suffix(self):
        assert parse_source("owner/repo@v1.2.0").ref == "v1.2.0"

    def test_hash_ref_suffix(self):
        source = parse_source("owner/repo#dev")

        assert source.ref == "dev"
        assert source.manifest_key == "owner/repo"

    @pytest.mark.parametrize(
        ("raw", "message"),
        [
            ("", "cannot be empty"),
            ("justrepo", "owner/repo format"),
            ("a/b/c", "too many slashes"),
            ("/repo", None),
            ("owner/", "repo cannot be empty"),
            ("owner/repo@", "ref cannot be empty"),
        ],
    )
    def test_invalid(self, raw, message):
        with pytest.raises(SourceError, match=message):
            parse_source(raw)


class TestUrls:
    def test_https_url(self):
        source = parse_source("https://gitlab.com/group/sub/repo.git@main")

        assert source.kind == "https-url"
        assert source.manifest_key == "sub/repo"
        assert source.ref == "main"
        assert source.clone_url == "https://gitlab.com/sub/repo.git"

    def test_https_url_without_repo(self):
        with pytest.raises(SourceError, match="expected owner/repo"):
            parse_source("https://github.com/owner")

    def test_ssh_url(self):
        source = parse_source("git@github.com:owner/repo.git@v2")

        assert source.kind == "ssh-url"
        assert source.manifest_key == "owner/repo"
        assert source.ref == "v2"
        assert source.clone_url == "git@github.com:owner/repo.git"

    def test_ssh_url_without_colon(self):
        with pytest.raises(SourceError, match="git@host:owner/repo"):
            parse_source("git@github.com/owner/repo")

    def test_tree_url(self):
        source = parse_source("https://github.com/owner/repo/tree/main/plugins/review")

        assert source.kind == "direct-path"
        assert source.ref == "main"
        assert source.target_plugin == "plugins/review"
        assert source.manifest_key == "owner/repo/plugins/review"
        assert source.clone_url == "https://github.com/owner/repo.git"

    def test_tree_url_rejects_ref_suffix(self):
        with pytest.raises(SourceError, match="cannot have @ref"):
            parse_source("https://github.com/owner/repo/tree/main/x@v1")

    def test_tree_url_requires_plugin_path(self):
        with pytest.raises(SourceError, match="missing plugin path"):
            parse_source("https://github.com/owner/repo/tree/main")


class TestLocalPaths:
    def test_existing_directory(self, tmp_path):
        source = parse_source(str(tmp_path))

        assert source.is_local
        assert source.manifest_key == str(tmp_path.resolve())
        assert source.resolved_path == tmp_path.resolve()
        assert source.ref is None

    def test_missing_directory(self, tmp_path):
        with pytest.raises(SourceError, match="does not exist"):
            parse_source(str(tmp_path / "nope"))

    def test_file_is_not_a_directory(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")

        with pytest.raises(SourceError, match="is not a directory"):
            parse_source(str(file_path))


def test_resolve_clone_url_prefers_stored_url():
    assert resolve_clone_url("owner/repo", "https://git.example.com/owner/repo.git") == (
        "https://git.example.com/owner/repo.git"
    )


def test_resolve_clone_url_derives_from_key():
    assert resolve_clone_url("owner/repo/plugins/x") == "https://github.com/owner/repo.git"


def test_resolve_clone_url_rejects_local_key():
    with pytest.raises(SourceError):
        resolve_clone_url("/home/me/plugin")


def test_default_clone_url_only_for_non_derivable_hosts():
    assert default_clone_url_for(parse_source("owner/repo")) is None
    assert default_clone_url_for(parse_source("https://github.com/owner/repo")) is None
    assert default_clone_url_for(parse_source("https://gitlab.com/owner/repo")) == "https://gitlab.com/owner/repo.git"


def test_build_source_from_key_uses_stored_url():
    source = build_source_from_key("owner/repo/member", "v1", "git@host:owner/repo.git")

    assert source.clone_url == "git@host:owner/repo.git"
    assert source.ref == "v1"
    assert source.target_plugin == "member"


def test_source_dir_from_key():
    root = Path("/tmp/clone")

    assert source_dir_from_key(root, "owner/repo") == root
    assert source_dir_from_key(root, "owner/repo/plugins/x") == root / "plugins" / "x"


def test_is_local_key():
    assert is_local_key("/abs/path")
    assert is_local_key("~/x")
    assert not is_local_key("owner/repo")


def test_skill_name_for_git_keys_ignores_clone_dir():
    clone = Path("/tmp/agntc-abc123")

    assert skill_name_for("owner/my-skill", clone) == "my-skill"
    assert skill_name_for("owner/repo/skills/review", clone / "skills" / "review") == "review"


def test_skill_name_for_local_key_uses_directory(tmp_path):
    skill = tmp_path / "my-skill"

    assert skill_name_for(str(skill), skill) == "my-skill"
