"""Package installation and removal.

Install pipeline, per package:
source -> classify -> project incoming files -> collision checks -> copy -> manifest write

Policy is injected: the driver registry, the agent selection and the
ConflictResolver that decides whether flagged files may be touched. Without a
resolver every conflict is refused.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .collisions import check_file_collisions
from .collisions import check_unmanaged_conflicts
from .config import has_config
from .config import read_config
from .copier import CopyResult
from .copier import copy_bare_skill
from .copier import copy_plugin_assets
from .copier import nuke_manifest_files
from .detection import detect_type
from .drivers import DriverRegistry
from .drivers import detect_agents
from .exceptions import InstallError
from .exceptions import NotInstalledError
from .git import cleanup_temp_dir
from .git import clone_source
from .incoming import compute_incoming_files
from .manifest import Manifest
from .manifest import ManifestEntry
from .manifest import add_entry
from .manifest import read_manifest
from .manifest import remove_entry
from .manifest import write_manifest
from .protocols import AgentDriver
from .protocols import ConflictResolver
from .sources import ParsedSource
from .sources import default_clone_url_for
from .sources import parse_source
from .sources import skill_name_for

logger = logging.getLogger(__name__)

InstallStatus = Literal["installed", "no-config", "no-agents", "invalid-type", "cancelled"]


class InstallReport(BaseModel):
    """Outcome of installing one package."""

    model_config = ConfigDict(frozen=True)

    key: str
    status: InstallStatus
    entry: ManifestEntry | None = None
    asset_counts_by_agent: dict[str, dict[str, int]] = Field(default_factory=dict)
    collisions: dict[str, list[str]] = Field(default_factory=dict)
    unmanaged: list[str] = Field(default_factory=list)
    message: str | None = None


async def install_source(
    source: str,
    project_dir: Path,
    *,
    registry: DriverRegistry,
    resolver: ConflictResolver | None = None,
    agents: list[str] | None = None,
    plugins: list[str] | None = None,
    on_warn: Callable[[str], None] | None = None,
) -> list[InstallReport]:
    """
    Install a package (or a collection's members) from a source identifier.

    Args:
        source: owner/repo[@ref], https/ssh URL, tree URL or local path
        project_dir: Project root (app policy)
        registry: Agent drivers
        resolver: Conflict resolution policy (None refuses every conflict)
        agents: Agents to install for (None: detected agents); always
                intersected with the agents the package declares
        plugins: Collection members to install (None: all members)
        on_warn: Optional callback receiving non-fatal warnings

    Returns:
        One InstallReport per package attempted

    Raises:
        SourceError: If the source string is malformed or the local path is unusable
        GitError: If the clone failed
        ConfigError: If a package's agntc.json is malformed
        InstallError: If copying failed (after rollback)

    Example:
        >>> reports = await install_source(
        ...     "owner/skills@v1.0.0",
        ...     project_dir=Path.cwd(),
        ...     registry=default_registry(),
        ... )
        >>> print([r.status for r in reports])
    """
    parsed = parse_source(source)
    logger.info(f"Installing {parsed.manifest_key} into {project_dir}")

    if parsed.is_local:
        return await _install_from_dir(
            parsed,
            parsed.resolved_path,
            None,
            project_dir,
            registry=registry,
            resolver=resolver,
            agents=agents,
            plugins=plugins,
            on_warn=on_warn,
        )

    clone = await clone_source(parsed.clone_url, parsed.ref)
    try:
        source_dir = clone.temp_dir
        if parsed.target_plugin:
            source_dir = clone.temp_dir / parsed.target_plugin
        return await _install_from_dir(
            parsed,
            source_dir,
            clone.commit,
            project_dir,
            registry=registry,
            resolver=resolver,
            agents=agents,
            plugins=plugins,
            on_warn=on_warn,
        )
    finally:
        cleanup_temp_dir(clone.temp_dir)


async def _install_from_dir(
    parsed: ParsedSource,
    source_dir: Path,
    commit: str | None,
    project_dir: Path,
    *,
    registry: DriverRegistry,
    resolver: ConflictResolver | None,
    agents: list[str] | None,
    plugins: list[str] | None,
    on_warn: Callable[[str], None] | None,
) -> list[InstallReport]:
    manifest = read_manifest(project_dir)
    key = parsed.manifest_key

    if has_config(source_dir):
        report, manifest = await install_package(
            key,
            source_dir,
            project_dir,
            manifest,
            ref=parsed.ref,
            commit=commit,
            clone_url=default_clone_url_for(parsed),
            registry=registry,
            resolver=resolver,
            agents=agents,
            on_warn=on_warn,
        )
        return [report]

    detected = detect_type(source_dir, has_config=False, on_warn=on_warn)
    if detected.kind != "collection":
        return [InstallReport(key=key, status="no-config", message=f"{key} has no agntc.json")]

    members = detected.plugins
    if plugins is not None:
        unknown = [name for name in plugins if name not in members]
        if unknown:
            logger.warning(f"Not part of collection {key}: {', '.join(unknown)}")
        members = [name for name in members if name in plugins]

    reports: list[InstallReport] = []
    for member in members:
        report, manifest = await install_package(
            f"{key}/{member}",
            source_dir / member,
            project_dir,
            manifest,
            ref=parsed.ref,
            commit=commit,
            clone_url=default_clone_url_for(parsed),
            registry=registry,
            resolver=resolver,
            agents=agents,
            on_warn=on_warn,
        )
        reports.append(report)
    return reports


async def install_package(
    key: str,
    source_dir: Path,
    project_dir: Path,
    manifest: Manifest,
    *,
    ref: str | None,
    commit: str | None,
    registry: DriverRegistry,
    clone_url: str | None = None,
    resolver: ConflictResolver | None = None,
    agents: list[str] | None = None,
    on_warn: Callable[[str], None] | None = None,
) -> tuple[InstallReport, Manifest]:
    """
    Install one configured package directory and persist the manifest.

    Both collision checks run before any copy. Approved colliding packages are
    removed entirely; if key is already installed its old files are replaced.

    Returns:
        (report, manifest after this install)

    Raises:
        ConfigError: If agntc.json is malformed
        InstallError: If copying failed (after rollback)
    """
    config = read_config(source_dir, on_warn=on_warn)
    if config is None:
        return InstallReport(key=key, status="no-config", message=f"{key} has no agntc.json"), manifest

    candidates = agents if agents is not None else await detect_agents(project_dir, registry)
    selected = [agent_id for agent_id in config.agents if agent_id in candidates and agent_id in registry]
    if not selected:
        return (
            InstallReport(
                key=key,
                status="no-agents",
                message=f"{key} supports {', '.join(config.agents) or 'no known agents'}, none selected",
            ),
            manifest,
        )

    detected = detect_type(source_dir, has_config=True, on_warn=on_warn)
    if not detected.is_installable:
        return InstallReport(key=key, status="invalid-type", message=f"{key} is not a valid plugin"), manifest

    drivers = [(agent_id, registry.get(agent_id)) for agent_id in selected]
    skill_name = skill_name_for(key, source_dir)
    incoming = compute_incoming_files(detected, source_dir, drivers, skill_name)
    logger.debug(f"{key}: {len(incoming)} incoming path(s)")

    collisions = check_file_collisions(incoming, manifest, exclude_key=key)
    if collisions:
        if resolver is None or not await resolver.resolve_collisions(key, collisions):
            logger.info(f"Install of {key} cancelled: collides with {', '.join(collisions)}")
            return InstallReport(key=key, status="cancelled", collisions=collisions), manifest
        for other_key in collisions:
            nuke_manifest_files(project_dir, manifest[other_key].files)
            manifest = remove_entry(manifest, other_key)
            logger.info(f"Removed {other_key} to resolve collision with {key}")
        write_manifest(project_dir, manifest)

    unmanaged = check_unmanaged_conflicts(incoming, manifest, project_dir)
    if unmanaged:
        if resolver is None or not await resolver.resolve_unmanaged(key, unmanaged):
            logger.info(f"Install of {key} cancelled: {len(unmanaged)} unmanaged file(s) in the way")
            return InstallReport(key=key, status="cancelled", unmanaged=unmanaged), manifest

    previous = manifest.get(key)

    try:
        if previous is not None:
            nuke_manifest_files(project_dir, previous.files)
        result = _copy(detected.kind, detected.asset_dirs, source_dir, project_dir, drivers, skill_name, on_warn)
    except Exception as e:
        if previous is not None:
            # old files are gone; keep the manifest truthful
            manifest = remove_entry(manifest, key)
            write_manifest(project_dir, manifest)
        raise InstallError(f"Failed to install {key}: {e}", context={"key": key}) from e

    entry = ManifestEntry.create(
        ref=ref,
        commit=commit,
        agents=selected,
        files=result.copied_files,
        clone_url=clone_url,
    )
    manifest = add_entry(manifest, key, entry)
    write_manifest(project_dir, manifest)

    logger.info(f"Installed {key}: {len(result.copied_files)} file(s) for {', '.join(selected)}")
    return (
        InstallReport(
            key=key,
            status="installed",
            entry=entry,
            asset_counts_by_agent=result.asset_counts_by_agent,
            unmanaged=unmanaged,
        ),
        manifest,
    )


def _copy(
    kind: str,
    asset_dirs: list[str],
    source_dir: Path,
    project_dir: Path,
    drivers: list[tuple[str, AgentDriver]],
    skill_name: str,
    on_warn: Callable[[str], None] | None,
) -> CopyResult:
    if kind == "plugin":
        return copy_plugin_assets(source_dir, asset_dirs, project_dir, drivers, on_warn=on_warn)
    return copy_bare_skill(source_dir, project_dir, drivers, on_warn=on_warn, skill_name=skill_name)


def resolve_target_keys(key: str, manifest: Manifest) -> list[str]:
    """
    Manifest keys addressed by key: the exact key, else every key under key/.

    Raises:
        NotInstalledError: If nothing matches
    """
    if key in manifest:
        return [key]

    prefix = f"{key}/"
    matches = [k for k in manifest if k.startswith(prefix)]
    if not matches:
        raise NotInstalledError(f"Plugin {key} is not installed.", context={"key": key})
    return matches


async def uninstall(keys: list[str], manifest: Manifest, project_dir: Path) -> Manifest:
    """
    Remove installed packages' files and their manifest entries.

    Args:
        keys: Manifest keys to remove (see resolve_target_keys)
        manifest: Current manifest
        project_dir: Project root

    Returns:
        The persisted manifest without the removed entries

    Raises:
        NotInstalledError: If a key is not in the manifest

    Example:
        >>> manifest = read_manifest(project_dir)
        >>> keys = resolve_target_keys("owner/repo", manifest)
        >>> manifest = await uninstall(keys, manifest, project_dir)
    """
    missing = [key for key in keys if key not in manifest]
    if missing:
        raise NotInstalledError(f"Not installed: {', '.join(missing)}", context={"keys": missing})

    for key in keys:
        logger.info(f"Uninstalling {key}")
        result = nuke_manifest_files(project_dir, manifest[key].files)
        logger.debug(f"{key}: removed {len(result.removed)}, already gone {len(result.skipped)}")
        manifest = remove_entry(manifest, key)

    write_manifest(project_dir, manifest)
    return manifest
