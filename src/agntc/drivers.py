"""Agent drivers and the explicitly constructed driver registry.

Apps build a registry once (usually via default_registry()) and pass it to
every operation that needs target directories or agent detection.
"""

import asyncio
import logging
import shutil
from collections.abc import Mapping
from pathlib import Path

from .protocols import AgentDriver

logger = logging.getLogger(__name__)


class ClaudeDriver:
    """Claude Code: skills, agents and hooks under .claude/."""

    TARGET_DIRS = {
        "skills": ".claude/skills",
        "agents": ".claude/agents",
        "hooks": ".claude/hooks",
    }

    def __init__(self, home_dir: Path | None = None):
        self.home_dir = home_dir or Path.home()

    async def detect(self, project_dir: Path) -> bool:
        return (
            (project_dir / ".claude").exists()
            or shutil.which("claude") is not None
            or (self.home_dir / ".claude").exists()
        )

    def get_target_dir(self, asset_type: str) -> str | None:
        return self.TARGET_DIRS.get(asset_type)


class CodexDriver:
    """Codex: skills only, under .agents/."""

    TARGET_DIRS = {"skills": ".agents/skills"}

    async def detect(self, project_dir: Path) -> bool:
        return (project_dir / ".agents").exists() or shutil.which("codex") is not None

    def get_target_dir(self, asset_type: str) -> str | None:
        return self.TARGET_DIRS.get(asset_type)


class DriverRegistry:
    """Mapping of agent id -> driver (with injected drivers)."""

    def __init__(self, drivers: Mapping[str, AgentDriver]):
        """Initialize registry with app-provided drivers.

        Example:
            >>> registry = DriverRegistry({"claude": ClaudeDriver()})
        """
        self._drivers = dict(drivers)

    def get(self, agent_id: str) -> AgentDriver:
        """
        Look up the driver for an agent.

        Raises:
            KeyError: If no driver is registered for agent_id
        """
        try:
            return self._drivers[agent_id]
        except KeyError:
            raise KeyError(f"No driver registered for agent: {agent_id}") from None

    def agent_ids(self) -> list[str]:
        return list(self._drivers)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._drivers


def default_registry() -> DriverRegistry:
    """Registry with the built-in Claude and Codex drivers."""
    return DriverRegistry({"claude": ClaudeDriver(), "codex": CodexDriver()})


async def detect_agents(project_dir: Path, registry: DriverRegistry) -> list[str]:
    """
    Detect which registered agents are in use, concurrently.

    A driver that raises counts as not detected.

    Returns:
        Detected agent ids in registry order
    """
    agent_ids = registry.agent_ids()

    async def _detect(agent_id: str) -> bool:
        try:
            return await registry.get(agent_id).detect(project_dir)
        except Exception as e:
            logger.debug(f"Detection failed for {agent_id}: {e}")
            return False

    results = await asyncio.gather(*(_detect(agent_id) for agent_id in agent_ids))
    return [agent_id for agent_id, detected in zip(agent_ids, results, strict=True) if detected]


def compute_effective_agents(installed_agents: list[str], declared_agents: list[str]) -> list[str]:
    """Installed agents the package still declares, in installed order."""
    declared = set(declared_agents)
    return [agent for agent in installed_agents if agent in declared]


def find_dropped_agents(installed_agents: list[str], declared_agents: list[str]) -> list[str]:
    """Installed agents the package no longer declares."""
    declared = set(declared_agents)
    return [agent for agent in installed_agents if agent not in declared]
