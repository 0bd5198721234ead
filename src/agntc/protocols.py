"""Protocols for collaborators the engine consumes but does not implement.

Apps provide concrete drivers and conflict resolvers; the engine only
depends on these interfaces.
"""

from pathlib import Path
from typing import Protocol
from typing import runtime_checkable


@runtime_checkable
class AgentDriver(Protocol):
    """Per-agent capabilities: detection and asset target directories."""

    async def detect(self, project_dir: Path) -> bool:
        """Return True if the agent tool appears to be in use.

        Best-effort; implementations must not raise.
        """
        ...

    def get_target_dir(self, asset_type: str) -> str | None:
        """Project-relative directory for an asset category.

        Returns:
            Relative path (no trailing separator), or None if the agent does not
            support that asset category
        """
        ...


class ConflictResolver(Protocol):
    """Human resolution step for pre-flight conflicts.

    Example implementations:
    - Interactive prompt asking whether to remove a colliding package
    - Non-interactive policy that always refuses (the default)
    - "--force" policy that always approves
    """

    async def resolve_collisions(self, key: str, collisions: dict[str, list[str]]) -> bool:
        """Approve removing the installed packages that own colliding paths.

        Args:
            key: Manifest key of the package being installed
            collisions: Installed package key -> overlapping relative paths

        Returns:
            True to remove those packages and continue, False to cancel
        """
        ...

    async def resolve_unmanaged(self, key: str, files: list[str]) -> bool:
        """Approve overwriting files that exist on disk but no package owns.

        Returns:
            True to overwrite, False to cancel this package's install
        """
        ...
