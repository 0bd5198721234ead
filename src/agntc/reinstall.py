"""Reinstall orchestration - the "update" pipeline for one installed package.

Process:
1. Re-read the source's agntc.json (missing -> no-config)
2. Intersect declared agents with installed agents (empty -> no-agents)
3. Re-classify the source (not a plugin or bare skill -> invalid-type)
4. Remove the old entry's files
5. Copy fresh files

A failure in step 4 or 5 -> copy-failed: the package is now uninstalled.

Steps 1-3 abort before anything on disk changes.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .config import read_config
from .copier import copy_bare_skill
from .copier import copy_plugin_assets
from .copier import nuke_manifest_files
from .detection import detect_type
from .drivers import DriverRegistry
from .drivers import compute_effective_agents
from .drivers import find_dropped_agents
from .exceptions import AgntcError
from .exceptions import SourceError
from .git import cleanup_temp_dir
from .git import clone_source
from .manifest import Manifest
from .manifest import ManifestEntry
from .manifest import remove_entry
from .manifest import write_manifest
from .sources import build_source_from_key
from .sources import is_local_key
from .sources import skill_name_for
from .sources import source_dir_from_key

logger = logging.getLogger(__name__)

ReinstallStatus = Literal["success", "no-config", "no-agents", "invalid-type", "copy-failed", "clone-failed"]


class ReinstallResult(BaseModel):
    """Outcome of a reinstall, rendered by the calling layer."""

    model_config = ConfigDict(frozen=True)

    status: ReinstallStatus
    entry: ManifestEntry | None = None
    copied_files: list[str] = Field(default_factory=list)
    dropped_agents: list[str] = Field(default_factory=list)
    message: str | None = None
    # Set for copy-failed: what the user should run next
    recovery_hint: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "success"


def execute_nuke_and_reinstall(
    key: str,
    source_dir: Path,
    existing_entry: ManifestEntry,
    project_dir: Path,
    *,
    registry: DriverRegistry,
    new_ref: str | None = None,
    new_commit: str | None = None,
    on_agents_dropped: Callable[[list[str], list[str]], None] | None = None,
    on_warn: Callable[[str], None] | None = None,
) -> ReinstallResult:
    """
    Replace an installed package's files with those from source_dir.

    Args:
        key: Manifest key being updated
        source_dir: Fetched package root
        existing_entry: Current manifest entry
        project_dir: Project root
        registry: Agent drivers
        new_ref: Ref to record (None keeps the existing ref)
        new_commit: Commit to record (None keeps the existing commit)
        on_agents_dropped: Called with (dropped agents, newly declared agents)
        on_warn: Optional callback receiving non-fatal warnings

    Returns:
        ReinstallResult; the new entry is returned, not persisted

    Raises:
        ConfigError: If the source's agntc.json is malformed
    """
    ref = new_ref if new_ref is not None else existing_entry.ref
    commit = new_commit if new_commit is not None else existing_entry.commit

    config = read_config(source_dir, on_warn=on_warn)
    if config is None:
        return ReinstallResult(status="no-config", message=f"{key} has no agntc.json")

    effective_agents = compute_effective_agents(existing_entry.agents, config.agents)
    dropped_agents = find_dropped_agents(existing_entry.agents, config.agents)

    if not effective_agents:
        return ReinstallResult(
            status="no-agents",
            dropped_agents=dropped_agents,
            message=f"Plugin {key} no longer supports any of your installed agents",
        )

    if dropped_agents:
        logger.warning(
            f"Plugin {key} no longer declares support for {', '.join(dropped_agents)}. "
            f"Currently installed for: {', '.join(existing_entry.agents)}. "
            f"New version supports: {', '.join(config.agents)}."
        )
        if on_agents_dropped:
            on_agents_dropped(dropped_agents, config.agents)

    detected = detect_type(source_dir, has_config=True, on_warn=on_warn)
    if not detected.is_installable:
        return ReinstallResult(status="invalid-type", message=f"{key} is not a valid plugin")

    agents = [(agent_id, registry.get(agent_id)) for agent_id in effective_agents]

    try:
        nuke_manifest_files(project_dir, existing_entry.files)
        if detected.kind == "plugin":
            result = copy_plugin_assets(source_dir, detected.asset_dirs, project_dir, agents, on_warn=on_warn)
        else:
            result = copy_bare_skill(
                source_dir,
                project_dir,
                agents,
                on_warn=on_warn,
                skill_name=skill_name_for(key, source_dir),
            )
    except Exception as e:
        logger.error(f"Update of {key} failed while replacing files: {e}")
        return ReinstallResult(
            status="copy-failed",
            dropped_agents=dropped_agents,
            message=str(e),
            recovery_hint=(
                f"Update failed for {key} after removing old files. "
                f"The plugin is currently uninstalled. "
                f"Run `agntc add {key}` to install it again."
            ),
        )

    entry = ManifestEntry.create(
        ref=ref,
        commit=commit,
        agents=effective_agents,
        files=result.copied_files,
        clone_url=existing_entry.clone_url,
    )
    logger.info(f"Reinstalled {key}: {len(result.copied_files)} file(s) for {', '.join(effective_agents)}")
    return ReinstallResult(
        status="success",
        entry=entry,
        copied_files=result.copied_files,
        dropped_agents=dropped_agents,
    )


async def clone_and_reinstall(
    key: str,
    entry: ManifestEntry,
    project_dir: Path,
    *,
    registry: DriverRegistry,
    new_ref: str | None = None,
    new_commit: str | None = None,
    source_dir: Path | None = None,
    manifest: Manifest | None = None,
    on_agents_dropped: Callable[[list[str], list[str]], None] | None = None,
    on_warn: Callable[[str], None] | None = None,
) -> ReinstallResult:
    """
    Fetch a package's source and reinstall it.

    Local keys (and an explicit source_dir) skip cloning. Git keys are cloned at
    new_ref (or the installed ref) using the stored clone URL; the clone is
    removed on every exit path.

    If manifest is given and the copy fails after the old files were removed,
    the entry is dropped from the manifest and the manifest is persisted, so
    disk and manifest agree that the package is uninstalled.

    Raises:
        SourceError: If a local source directory is missing or not a directory
        ConfigError: If the source's agntc.json is malformed
    """
    if source_dir is None and is_local_key(key):
        source_dir = Path(key)
        if not source_dir.exists():
            raise SourceError(f"Path {source_dir} does not exist", context={"key": key})
        if not source_dir.is_dir():
            raise SourceError(f"Path {source_dir} is not a directory", context={"key": key})

    if source_dir is not None:
        result = execute_nuke_and_reinstall(
            key,
            source_dir,
            entry,
            project_dir,
            registry=registry,
            new_ref=new_ref,
            new_commit=new_commit,
            on_agents_dropped=on_agents_dropped,
            on_warn=on_warn,
        )
        return _persist_copy_failure(result, key, project_dir, manifest)

    try:
        source = build_source_from_key(key, new_ref if new_ref is not None else entry.ref, entry.clone_url)
    except AgntcError as e:
        return ReinstallResult(status="clone-failed", message=e.message)

    try:
        clone = await clone_source(source.clone_url, source.ref)
    except AgntcError as e:
        logger.error(f"Clone failed for {key}: {e.message}")
        return ReinstallResult(status="clone-failed", message=e.message)

    try:
        result = execute_nuke_and_reinstall(
            key,
            source_dir_from_key(clone.temp_dir, key),
            entry,
            project_dir,
            registry=registry,
            new_ref=new_ref,
            new_commit=new_commit if new_commit is not None else clone.commit,
            on_agents_dropped=on_agents_dropped,
            on_warn=on_warn,
        )
        return _persist_copy_failure(result, key, project_dir, manifest)
    finally:
        cleanup_temp_dir(clone.temp_dir)


def _persist_copy_failure(
    result: ReinstallResult,
    key: str,
    project_dir: Path,
    manifest: Manifest | None,
) -> ReinstallResult:
    if result.status == "copy-failed" and manifest is not None:
        write_manifest(project_dir, remove_entry(manifest, key))
        logger.debug(f"Removed {key} from manifest after failed update")
    return result
