"""Incoming-file projection: predict install paths without copying.

The result feeds the collision checks that run before any copy begins, so it
must match the top-level paths the copier records.
"""

import os
from pathlib import Path

from .detection import DetectedType
from .protocols import AgentDriver


def list_entries(directory: Path) -> list[os.DirEntry]:
    """Immediate entries of directory sorted by name (empty if unreadable)."""
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda e: e.name)
    except OSError:
        return []


def compute_incoming_files(
    detected: DetectedType,
    source_dir: Path,
    agents: list[tuple[str, AgentDriver]],
    skill_name: str | None = None,
) -> list[str]:
    """
    Relative paths an install of source_dir would produce.

    Args:
        detected: Classification of source_dir (bare skill or plugin)
        source_dir: Package root
        agents: (agent id, driver) pairs to install for
        skill_name: Install name for a bare skill (default: source_dir.name)

    Returns:
        Ordered, de-duplicated relative paths; directories end with "/"
    """
    files: list[str] = []
    seen: set[str] = set()

    def add(path: str) -> None:
        if path not in seen:
            seen.add(path)
            files.append(path)

    if detected.kind == "bare-skill":
        name = skill_name or source_dir.name
        for _, driver in agents:
            target_dir = driver.get_target_dir("skills")
            if target_dir is not None:
                add(f"{target_dir}/{name}/")
        return files

    if detected.kind != "plugin":
        return files

    for _, driver in agents:
        for asset_dir in detected.asset_dirs:
            target_dir = driver.get_target_dir(asset_dir)
            if target_dir is None:
                continue
            for entry in list_entries(source_dir / asset_dir):
                suffix = "/" if entry.is_dir() else ""
                add(f"{target_dir}/{entry.name}{suffix}")

    return files
