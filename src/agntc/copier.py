"""Transactional copy of package assets into a project.

Every path written is recorded in order. If any copy fails, everything
recorded so far is removed and the original exception is re-raised, so the
caller sees the real failure and the project is left as it was.

Directory assets are walked and copied file by file; each directory and file
is recorded individually, which keeps rollback and later collision checks
exact.
"""

import logging
import os
import shutil
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .config import CONFIG_FILE
from .incoming import list_entries
from .protocols import AgentDriver

logger = logging.getLogger(__name__)


class CopyResult(BaseModel):
    """Outcome of a successful copy."""

    model_config = ConfigDict(frozen=True)

    copied_files: list[str]
    # agent id -> asset category -> number of top-level assets copied (plugins only)
    asset_counts_by_agent: dict[str, dict[str, int]] = Field(default_factory=dict)


class NukeResult(BaseModel):
    """Outcome of removing a package's files."""

    model_config = ConfigDict(frozen=True)

    removed: list[str]
    skipped: list[str]


class _Transaction:
    """Ordered record of paths written during one copy."""

    def __init__(self, project_dir: Path):
        self.project_dir = project_dir
        self._written: dict[str, None] = {}

    @property
    def written(self) -> list[str]:
        return list(self._written)

    def record(self, rel_path: str) -> None:
        self._written.setdefault(rel_path, None)

    def copy_file(self, src: Path, rel_path: str) -> None:
        dest = self.project_dir / rel_path
        dest.parent.mkdir(parents=True, exist_ok=True)
        existed = dest.exists()
        try:
            shutil.copy2(src, dest)
        except Exception:
            # unrecorded, so rollback cannot see it
            if not existed:
                with suppress(OSError):
                    dest.unlink(missing_ok=True)
            raise
        self.record(rel_path)

    def copy_dir(self, src: Path, rel_dir: str, skip: frozenset[str] = frozenset()) -> None:
        """Copy src recursively to rel_dir (no trailing separator)."""
        (self.project_dir / rel_dir).mkdir(parents=True, exist_ok=True)
        self.record(f"{rel_dir}/")
        for entry in list_entries(src):
            if entry.name in skip:
                continue
            rel = f"{rel_dir}/{entry.name}"
            if entry.is_dir(follow_symlinks=False):
                self.copy_dir(Path(entry.path), rel)
            else:
                self.copy_file(Path(entry.path), rel)


def rollback_copied_files(
    files: list[str],
    project_dir: Path,
    on_warn: Callable[[str], None] | None = None,
) -> None:
    """
    Best-effort removal of paths written by a failed copy.

    Missing paths are ignored; a failed deletion is warned about, never raised.
    """
    for rel_path in files:
        full_path = project_dir / rel_path
        try:
            if full_path.is_dir() and not full_path.is_symlink():
                shutil.rmtree(full_path)
            else:
                full_path.unlink(missing_ok=True)
        except OSError as e:
            message = f"Rollback: failed to delete {rel_path}: {e}"
            logger.warning(message)
            if on_warn:
                on_warn(message)


def copy_bare_skill(
    source_dir: Path,
    project_dir: Path,
    agents: list[tuple[str, AgentDriver]],
    on_warn: Callable[[str], None] | None = None,
    skill_name: str | None = None,
) -> CopyResult:
    """
    Copy a single skill directory into each agent's skills directory.

    The skill is installed as skill_name (default: source_dir.name). The
    package's own agntc.json is not copied.

    Raises:
        Exception: Whatever the failing copy raised, after rollback
    """
    tx = _Transaction(project_dir)
    skill_name = skill_name or source_dir.name

    try:
        for agent_id, driver in agents:
            target_dir = driver.get_target_dir("skills")
            if target_dir is None:
                logger.debug(f"{agent_id} has no skills directory, skipping")
                continue
            tx.copy_dir(source_dir, f"{target_dir}/{skill_name}", skip=frozenset({CONFIG_FILE}))
    except Exception:
        rollback_copied_files(tx.written, project_dir, on_warn)
        raise

    return CopyResult(copied_files=tx.written)


def copy_plugin_assets(
    source_dir: Path,
    asset_dirs: list[str],
    project_dir: Path,
    agents: list[tuple[str, AgentDriver]],
    on_warn: Callable[[str], None] | None = None,
) -> CopyResult:
    """
    Copy each asset category's top-level entries into each agent's target directory.

    Copies run strictly in order (agent, then category, then entry name) so the
    rollback set is always exactly the paths written so far.

    Raises:
        Exception: Whatever the failing copy raised, after rollback
    """
    tx = _Transaction(project_dir)
    counts_by_agent: dict[str, dict[str, int]] = {}

    try:
        for agent_id, driver in agents:
            counts: dict[str, int] = {}
            for asset_dir in asset_dirs:
                target_dir = driver.get_target_dir(asset_dir)
                if target_dir is None:
                    continue

                entries = list_entries(source_dir / asset_dir)
                for entry in entries:
                    rel = f"{target_dir}/{entry.name}"
                    if entry.is_dir():
                        tx.copy_dir(Path(entry.path), rel)
                    else:
                        tx.copy_file(Path(entry.path), rel)
                counts[asset_dir] = len(entries)

            counts_by_agent[agent_id] = counts
    except Exception:
        rollback_copied_files(tx.written, project_dir, on_warn)
        raise

    return CopyResult(copied_files=tx.written, asset_counts_by_agent=counts_by_agent)


def nuke_manifest_files(project_dir: Path, files: list[str]) -> NukeResult:
    """
    Remove a package's recorded files.

    Entries ending in "/" are removed recursively. Paths already gone are
    reported as skipped; any other failure propagates.
    """
    removed: list[str] = []
    skipped: list[str] = []

    for rel_path in files:
        full_path = project_dir / rel_path
        try:
            if rel_path.endswith("/"):
                shutil.rmtree(full_path)
            else:
                os.remove(full_path)
            removed.append(rel_path)
        except FileNotFoundError:
            skipped.append(rel_path)

    logger.debug(f"Removed {len(removed)} path(s), {len(skipped)} already gone")
    return NukeResult(removed=removed, skipped=skipped)
