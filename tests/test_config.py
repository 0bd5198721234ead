"""Tests for agntc.json parsing."""

import pytest
from agntc import ConfigError
from agntc import read_config


def test_missing_config_returns_none(tmp_path):
    assert read_config(tmp_path) is None


def test_reads_known_agents(tmp_path):
    (tmp_path / "agntc.json").write_text('{"agents": ["claude", "codex"]}')

    config = read_config(tmp_path)

    assert config is not None
    assert config.agents == ["claude", "codex"]


def test_unknown_agents_dropped_with_warning(tmp_path):
    """Unknown agent ids are skipped, not fatal."""
    (tmp_path / "agntc.json").write_text('{"agents": ["claude", "cursor"]}')
    warnings: list[str] = []

    config = read_config(tmp_path, on_warn=warnings.append)

    assert config is not None
    assert config.agents == ["claude"]
    assert len(warnings) == 1
    assert "cursor" in warnings[0]


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("{oops", "Invalid agntc.json"),
        ("[]", "agents field is required"),
        ('{"name": "x"}', "agents field is required"),
        ('{"agents": []}', "agents must not be empty"),
        ('{"agents": "claude"}', "agents must not be empty"),
    ],
)
def test_invalid_config_raises(tmp_path, content, message):
    (tmp_path / "agntc.json").write_text(content)

    with pytest.raises(ConfigError, match=message):
        read_config(tmp_path)


def test_non_string_agents_dropped_with_warning(tmp_path):
    (tmp_path / "agntc.json").write_text('{"agents": ["claude", 123, null]}')
    warnings: list[str] = []

    config = read_config(tmp_path, on_warn=warnings.append)

    assert config.agents == ["claude"]
    assert warnings == ["Invalid agent entry 123 - skipping", "Invalid agent entry None - skipping"]
