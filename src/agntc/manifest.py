"""Installed-package manifest.

Tracks every package installed into a project and the exact files it owns,
so update and remove can touch those files and nothing else.

Manifest format (JSON, at <project>/.agntc/manifest.json):
{
  "owner/repo": {
    "ref": "v1.2.0",
    "commit": "abc123...",
    "installedAt": "2026-02-01T12:00:00+00:00",
    "agents": ["claude"],
    "files": [".claude/skills/my-skill/", ".claude/skills/my-skill/SKILL.md"],
    "cloneUrl": null
  }
}

The manifest is a plain mapping; add_entry/remove_entry return new mappings and
never touch disk. write_manifest persists atomically (temp file + rename).
"""

import json
import logging
import os
from datetime import UTC
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from .exceptions import AgntcError

logger = logging.getLogger(__name__)

MANIFEST_DIR = ".agntc"
MANIFEST_FILE = "manifest.json"


class ManifestEntry(BaseModel):
    """One installed package (immutable)."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    ref: str | None = None
    commit: str | None = None
    installed_at: str = Field(alias="installedAt")
    agents: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    # Absent in manifests written before non-GitHub hosts were supported
    clone_url: str | None = Field(default=None, alias="cloneUrl")

    @field_validator("agents")
    @classmethod
    def _unique_agents(cls, agents: list[str]) -> list[str]:
        return list(dict.fromkeys(agents))

    @classmethod
    def create(
        cls,
        *,
        ref: str | None,
        commit: str | None,
        agents: list[str],
        files: list[str],
        clone_url: str | None = None,
    ) -> "ManifestEntry":
        """Build an entry stamped with the current time."""
        return cls(
            ref=ref,
            commit=commit,
            installed_at=datetime.now(UTC).isoformat(),
            agents=agents,
            files=files,
            clone_url=clone_url,
        )

    def to_dict(self) -> dict:
        """Convert to the on-disk (camelCase) dictionary."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_dict(cls, data: dict) -> "ManifestEntry":
        """Create from the on-disk dictionary."""
        return cls.model_validate(data)


Manifest = dict[str, ManifestEntry]


def manifest_path(project_dir: Path) -> Path:
    """Location of the manifest file for a project."""
    return project_dir / MANIFEST_DIR / MANIFEST_FILE


def read_manifest(project_dir: Path) -> Manifest:
    """
    Load the project's manifest.

    Args:
        project_dir: Project root

    Returns:
        Mapping of key -> entry (empty if no manifest has been written yet)

    Raises:
        AgntcError: If the manifest exists but cannot be parsed
    """
    path = manifest_path(project_dir)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}

    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("manifest root must be an object")
        manifest = {key: ManifestEntry.from_dict(entry) for key, entry in data.items()}
    except (ValueError, ValidationError) as e:
        raise AgntcError(f"Failed to read manifest: {e}", context={"path": str(path)}) from e

    logger.debug(f"Loaded {len(manifest)} entries from {path}")
    return manifest


def write_manifest(project_dir: Path, manifest: Manifest) -> None:
    """
    Persist the manifest atomically.

    Writes to a uniquely named temp file next to the manifest, then renames it
    into place, so readers see either the previous or the new document.
    """
    dir_path = project_dir / MANIFEST_DIR
    dir_path.mkdir(parents=True, exist_ok=True)

    content = json.dumps({key: entry.to_dict() for key, entry in manifest.items()}, indent=2) + "\n"
    temp_path = dir_path / f".manifest-{uuid4().hex}.tmp"

    try:
        temp_path.write_text(content, encoding="utf-8")
        os.replace(temp_path, dir_path / MANIFEST_FILE)
    except OSError:
        temp_path.unlink(missing_ok=True)
        raise

    logger.debug(f"Saved manifest with {len(manifest)} entries")


def add_entry(manifest: Manifest, key: str, entry: ManifestEntry) -> Manifest:
    """Return a new manifest with key set to entry."""
    return {**manifest, key: entry}


def remove_entry(manifest: Manifest, key: str) -> Manifest:
    """Return a new manifest without key."""
    return {k: v for k, v in manifest.items() if k != key}
