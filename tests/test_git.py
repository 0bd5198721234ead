"""Tests for the git access layer (subprocess stubbed)."""

import subprocess
from pathlib import Path

import pytest
from agntc import GitAuthError
from agntc import GitError
from agntc import GitTimeoutError
from agntc import clone_source
from agntc import git
from agntc.git import is_auth_error
from agntc.git import parse_ls_remote_sha
from agntc.git import parse_tags


class FakeGit:
    """Stand-in for subprocess.run that scripts clone outcomes."""

    def __init__(self, clone_results: list[tuple[int, str]], commit: str = "c" * 40):
        self.clone_results = list(clone_results)
        self.commit = commit
        self.calls: list[list[str]] = []
        self.clone_dirs: list[Path] = []

    def __call__(self, command, **kwargs):
        self.calls.append(command)
        args = command[1:]
        if args[0] == "clone":
            target = Path(args[-1])
            self.clone_dirs.append(target)
            returncode, stderr = self.clone_results.pop(0)
            if returncode == 0:
                (target / "README.md").write_text("hello")
            else:
                # git leaves partial state behind on failure
                (target / ".git").mkdir(exist_ok=True)
            return subprocess.CompletedProcess(command, returncode, "", stderr)
        if "rev-parse" in args:
            return subprocess.CompletedProcess(command, 0, self.commit + "\n", "")
        raise AssertionError(f"unexpected git call: {command}")

    @property
    def clone_calls(self) -> int:
        return sum(1 for c in self.calls if c[1] == "clone")


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(git, "RETRY_DELAYS", (0, 0))


@pytest.mark.asyncio
async def test_clone_success(monkeypatch):
    """Successful clone returns the temp dir and HEAD commit."""
    fake = FakeGit([(0, "")])
    monkeypatch.setattr(git.subprocess, "run", fake)

    result = await clone_source("https://github.com/owner/repo.git", "v1.0.0")

    try:
        assert result.commit == "c" * 40
        assert (result.temp_dir / "README.md").exists()
        assert fake.calls[0][:6] == ["git", "clone", "--depth", "1", "--branch", "v1.0.0"]
    finally:
        git.cleanup_temp_dir(result.temp_dir)


@pytest.mark.asyncio
async def test_clone_without_ref_omits_branch(monkeypatch):
    fake = FakeGit([(0, "")])
    monkeypatch.setattr(git.subprocess, "run", fake)

    result = await clone_source("https://github.com/owner/repo.git")
    git.cleanup_temp_dir(result.temp_dir)

    assert "--branch" not in fake.calls[0]


@pytest.mark.asyncio
async def test_auth_failure_is_not_retried(monkeypatch):
    """Authentication failures abort after one attempt and remove the temp dir."""
    fake = FakeGit([(128, "fatal: Authentication failed for 'https://github.com/owner/private.git'")])
    monkeypatch.setattr(git.subprocess, "run", fake)

    with pytest.raises(GitAuthError, match="Authentication failed"):
        await clone_source("https://github.com/owner/private.git")

    assert fake.clone_calls == 1
    assert not fake.clone_dirs[0].exists()


@pytest.mark.asyncio
async def test_transient_failure_retried_then_succeeds(monkeypatch):
    """Transient failures are retried and a later success wins."""
    fake = FakeGit([(128, "fatal: unable to access: Connection reset"), (0, "")])
    monkeypatch.setattr(git.subprocess, "run", fake)

    result = await clone_source("https://github.com/owner/repo.git")
    try:
        assert fake.clone_calls == 2
        assert not (result.temp_dir / ".git").exists()
    finally:
        git.cleanup_temp_dir(result.temp_dir)


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(monkeypatch):
    fake = FakeGit([(128, "network down")] * 3)
    monkeypatch.setattr(git.subprocess, "run", fake)

    with pytest.raises(GitError, match="after 3 attempts: network down"):
        await clone_source("https://github.com/owner/repo.git")

    assert fake.clone_calls == 3
    assert not fake.clone_dirs[0].exists()


@pytest.mark.asyncio
async def test_timeout_is_transient(monkeypatch):
    """A timed-out clone is retried like any other transient failure."""
    attempts = []

    def fake_run(command, **kwargs):
        attempts.append(command)
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(git.subprocess, "run", fake_run)

    with pytest.raises(GitError, match="timed out"):
        await clone_source("https://github.com/owner/repo.git")

    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_run_git_timeout_error(monkeypatch):
    def fake_run(command, **kwargs):
        raise subprocess.TimeoutExpired(command, kwargs["timeout"])

    monkeypatch.setattr(git.subprocess, "run", fake_run)

    with pytest.raises(GitTimeoutError):
        await git.ls_remote("https://github.com/owner/repo.git", "HEAD")


@pytest.mark.asyncio
async def test_ls_remote_arguments(monkeypatch):
    seen = {}

    def fake_run(command, **kwargs):
        seen["command"] = command
        seen["timeout"] = kwargs["timeout"]
        return subprocess.CompletedProcess(command, 0, "abc\trefs/tags/v1\n", "")

    monkeypatch.setattr(git.subprocess, "run", fake_run)

    output = await git.ls_remote("https://example.com/r.git", tags=True)

    assert output == "abc\trefs/tags/v1\n"
    assert seen["command"] == ["git", "ls-remote", "--tags", "https://example.com/r.git"]
    assert seen["timeout"] == git.LS_REMOTE_TIMEOUT


@pytest.mark.parametrize(
    ("stderr", "expected"),
    [
        ("remote: Permission denied to user", True),
        ("fatal: could not read Username for 'https://github.com'", True),
        ("fatal: could not read Password", True),
        ("fatal: Authentication failed", True),
        ("fatal: unable to access: Could not resolve host", False),
        ("", False),
    ],
)
def test_is_auth_error(stderr, expected):
    assert is_auth_error(stderr) is expected


def test_parse_ls_remote_sha():
    assert parse_ls_remote_sha("abc123\tHEAD\n") == "abc123"
    assert parse_ls_remote_sha("\nabc\trefs/heads/main\ndef\trefs/heads/main2\n") == "abc"
    assert parse_ls_remote_sha("") is None
    assert parse_ls_remote_sha("  \n") is None


def test_parse_tags_drops_dereferenced_entries():
    output = (
        "1111\trefs/tags/v1.0.0\n"
        "2222\trefs/tags/v1.0.0^{}\n"
        "3333\trefs/tags/v1.2.0\n"
        "4444\trefs/tags/v2.0.0\n"
    )

    assert parse_tags(output) == ["v1.0.0", "v1.2.0", "v2.0.0"]
