"""Pre-flight collision analysis.

Two read-only checks run before any copy:
- package vs package: incoming paths already owned by another manifest entry
- package vs unmanaged file: incoming paths on disk that no entry owns
"""

from pathlib import Path

from .manifest import Manifest


def check_file_collisions(
    incoming_files: list[str],
    manifest: Manifest,
    exclude_key: str | None = None,
) -> dict[str, list[str]]:
    """
    Find manifest entries that already own incoming paths.

    Args:
        incoming_files: Relative paths about to be installed
        manifest: Current manifest
        exclude_key: Entry to ignore (the package being re-installed)

    Returns:
        Entry key -> overlapping paths, only for non-empty overlaps
    """
    if not incoming_files:
        return {}

    incoming = set(incoming_files)
    collisions: dict[str, list[str]] = {}

    for key, entry in manifest.items():
        if key == exclude_key:
            continue
        overlapping = [path for path in entry.files if path in incoming]
        if overlapping:
            collisions[key] = overlapping

    return collisions


def check_unmanaged_conflicts(incoming_files: list[str], manifest: Manifest, project_dir: Path) -> list[str]:
    """
    Find incoming paths that exist on disk but belong to no manifest entry.

    Returns:
        Conflicting relative paths, in incoming order
    """
    if not incoming_files:
        return []

    tracked = {path for entry in manifest.values() for path in entry.files}

    return [
        path
        for path in incoming_files
        if path not in tracked and _occupied(project_dir / path)
    ]


def _occupied(path: Path) -> bool:
    # lexists: a dangling symlink still occupies the path
    return path.exists() or path.is_symlink()
