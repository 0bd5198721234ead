"""Tests for the manifest store."""

import json

import pytest
from agntc import AgntcError
from agntc import ManifestEntry
from agntc import add_entry
from agntc import read_manifest
from agntc import remove_entry
from agntc import write_manifest
from agntc.manifest import MANIFEST_DIR
from agntc.manifest import MANIFEST_FILE


def make_entry(**overrides) -> ManifestEntry:
    data = {
        "ref": "main",
        "commit": "a" * 40,
        "installed_at": "2026-02-01T00:00:00+00:00",
        "agents": ["claude"],
        "files": [".claude/skills/my-skill/", ".claude/skills/my-skill/SKILL.md"],
        "clone_url": None,
    }
    data.update(overrides)
    return ManifestEntry(**data)


def test_read_missing_manifest_returns_empty(tmp_path):
    """No manifest yet means an empty mapping, not an error."""
    assert read_manifest(tmp_path) == {}


def test_write_and_read_round_trip(tmp_path):
    """Written manifest reads back equal."""
    manifest = {
        "owner/repo": make_entry(),
        "/abs/local": make_entry(ref=None, commit=None, agents=["claude", "codex"]),
        "gitlab/thing": make_entry(clone_url="https://gitlab.com/gitlab/thing.git"),
    }

    write_manifest(tmp_path, manifest)

    assert read_manifest(tmp_path) == manifest


def test_written_document_uses_camel_case_keys(tmp_path):
    """On-disk format keeps the installedAt/cloneUrl field names."""
    write_manifest(tmp_path, {"owner/repo": make_entry()})

    data = json.loads((tmp_path / MANIFEST_DIR / MANIFEST_FILE).read_text())

    assert set(data["owner/repo"]) == {"ref", "commit", "installedAt", "agents", "files", "cloneUrl"}


def test_missing_clone_url_defaults_to_none(tmp_path):
    """Entries written before cloneUrl existed read back with it set to None."""
    manifest_dir = tmp_path / MANIFEST_DIR
    manifest_dir.mkdir()
    (manifest_dir / MANIFEST_FILE).write_text(
        json.dumps(
            {
                "owner/repo": {
                    "ref": None,
                    "commit": "abc",
                    "installedAt": "2026-01-01T00:00:00Z",
                    "agents": ["claude"],
                    "files": [".claude/skills/x/"],
                }
            }
        )
    )

    entry = read_manifest(tmp_path)["owner/repo"]

    assert entry.clone_url is None
    assert entry.commit == "abc"
    # Back-fill happens on read only
    assert "cloneUrl" not in (manifest_dir / MANIFEST_FILE).read_text()


def test_write_leaves_no_temp_files(tmp_path):
    """Atomic write renames its temp file into place."""
    write_manifest(tmp_path, {"owner/repo": make_entry()})
    write_manifest(tmp_path, {})

    assert [p.name for p in (tmp_path / MANIFEST_DIR).iterdir()] == [MANIFEST_FILE]
    assert read_manifest(tmp_path) == {}


def test_corrupt_manifest_raises(tmp_path):
    """An unparsable manifest is an error rather than silently empty."""
    manifest_dir = tmp_path / MANIFEST_DIR
    manifest_dir.mkdir()
    (manifest_dir / MANIFEST_FILE).write_text("{not json")

    with pytest.raises(AgntcError, match="Failed to read manifest"):
        read_manifest(tmp_path)


def test_add_and_remove_are_pure():
    """add_entry/remove_entry return new mappings and leave the input alone."""
    original = {"a/b": make_entry()}

    added = add_entry(original, "c/d", make_entry(ref="v1.0.0"))
    removed = remove_entry(added, "a/b")

    assert list(original) == ["a/b"]
    assert list(added) == ["a/b", "c/d"]
    assert list(removed) == ["c/d"]
    assert remove_entry(original, "missing") == original


def test_duplicate_agents_collapse_in_order():
    """Agents behave as an insertion-ordered set."""
    entry = make_entry(agents=["codex", "claude", "codex"])

    assert entry.agents == ["codex", "claude"]


def test_create_stamps_installed_at():
    """create() records an ISO-8601 timestamp."""
    entry = ManifestEntry.create(ref=None, commit=None, agents=["claude"], files=[])

    assert "T" in entry.installed_at
    assert entry.clone_url is None
