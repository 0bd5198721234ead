"""Source type detection - Convention over configuration.

Convention:
- agntc.json + any of skills/, agents/, hooks/  -> plugin
- agntc.json + SKILL.md only                    -> bare skill
- no agntc.json, children with agntc.json       -> collection of plugins
- anything else                                 -> not a package
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .config import CONFIG_FILE

logger = logging.getLogger(__name__)

ASSET_DIRS = ("skills", "agents", "hooks")
SKILL_MARKER = "SKILL.md"

DetectedKind = Literal["bare-skill", "plugin", "collection", "not-agntc"]


class DetectedType(BaseModel):
    """Classification of a fetched source directory (never persisted)."""

    model_config = ConfigDict(frozen=True)

    kind: DetectedKind
    asset_dirs: list[str] = Field(default_factory=list)
    plugins: list[str] = Field(default_factory=list)

    @property
    def is_installable(self) -> bool:
        """True for the shapes that can be copied directly (bare skill, plugin)."""
        return self.kind in ("bare-skill", "plugin")


def detect_type(
    directory: Path,
    *,
    has_config: bool,
    on_warn: Callable[[str], None] | None = None,
) -> DetectedType:
    """
    Classify a source directory.

    Args:
        directory: Fetched source root
        has_config: Whether agntc.json exists in directory
        on_warn: Optional callback receiving non-fatal warnings

    Returns:
        DetectedType (plugin wins over bare skill when both markers exist)
    """

    def warn(message: str) -> None:
        logger.warning(message)
        if on_warn:
            on_warn(message)

    if has_config:
        found = [name for name in ASSET_DIRS if (directory / name).exists()]
        has_skill_md = (directory / SKILL_MARKER).exists()

        if found:
            if has_skill_md:
                warn(f"{SKILL_MARKER} found alongside asset dirs - treating as plugin, {SKILL_MARKER} will be ignored")
            return DetectedType(kind="plugin", asset_dirs=found)

        if has_skill_md:
            return DetectedType(kind="bare-skill")

        warn(f"{CONFIG_FILE} present but no {SKILL_MARKER} or asset dirs found")
        return DetectedType(kind="not-agntc")

    try:
        children = sorted(directory.iterdir(), key=lambda p: p.name)
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return DetectedType(kind="not-agntc")

    plugins = [child.name for child in children if child.is_dir() and (child / CONFIG_FILE).exists()]
    if plugins:
        return DetectedType(kind="collection", plugins=plugins)

    return DetectedType(kind="not-agntc")
