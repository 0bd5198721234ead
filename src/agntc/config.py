"""Package configuration - Parse agntc.json from a source directory.

A source without agntc.json is simply not configured for this tool; that is
reported as None, not as an error.
"""

import json
import logging
from collections.abc import Callable
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE = "agntc.json"
KNOWN_AGENTS = ("claude", "codex")


class AgntcConfig(BaseModel):
    """Package configuration from agntc.json."""

    model_config = ConfigDict(frozen=True)

    agents: list[str]


def has_config(directory: Path) -> bool:
    """True if directory contains an agntc.json file."""
    return (directory / CONFIG_FILE).is_file()


def read_config(directory: Path, on_warn: Callable[[str], None] | None = None) -> AgntcConfig | None:
    """
    Load agntc.json from a source directory.

    Args:
        directory: Package root
        on_warn: Optional callback receiving non-fatal warnings

    Returns:
        AgntcConfig with unknown agents dropped, or None if agntc.json is absent

    Raises:
        ConfigError: If the file is not valid JSON or agents is missing/empty
    """
    path = directory / CONFIG_FILE
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid {CONFIG_FILE}: {e}", context={"path": str(path)}) from e

    if not isinstance(data, dict) or "agents" not in data:
        raise ConfigError("agents field is required", context={"path": str(path)})

    agents = data["agents"]
    if not isinstance(agents, list) or not agents:
        raise ConfigError("agents must not be empty", context={"path": str(path)})

    filtered: list[str] = []
    for agent in agents:
        if agent in KNOWN_AGENTS:
            filtered.append(agent)
            continue
        if isinstance(agent, str):
            message = f'Unknown agent "{agent}" - skipping'
        else:
            message = f"Invalid agent entry {agent!r} - skipping"
        logger.warning(message)
        if on_warn:
            on_warn(message)

    return AgntcConfig(agents=filtered)
