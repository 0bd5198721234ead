"""Git access layer - clone and remote ref queries via the git CLI.

Every call is bounded by a timeout; a timeout is reported as GitTimeoutError
and treated like any other transient failure. Subprocesses run in a worker
thread so concurrent update checks do not block the event loop.
"""

import asyncio
import logging
import shutil
import subprocess
import tempfile
from pathlib import Path

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import GitAuthError
from .exceptions import GitError
from .exceptions import GitTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
LS_REMOTE_TIMEOUT = 15.0
CLONE_TIMEOUT = 60.0

MAX_CLONE_ATTEMPTS = 3
RETRY_DELAYS = (0.5, 1.0)

AUTH_ERROR_PATTERNS = (
    "Authentication",
    "Permission denied",
    "could not read Username",
    "could not read Password",
)


class CloneResult(BaseModel):
    """Fresh clone owned by the caller; remove temp_dir on every exit path."""

    model_config = ConfigDict(frozen=True)

    temp_dir: Path
    commit: str


def is_auth_error(stderr: str) -> bool:
    """True if git stderr indicates an authentication or permission failure."""
    return any(pattern in stderr for pattern in AUTH_ERROR_PATTERNS)


def _run_git_sync(args: list[str], cwd: Path | None, timeout: float) -> str:
    command = ["git", *args]
    try:
        result = subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        raise GitTimeoutError(
            f"git {args[0]} timed out after {timeout:g}s",
            context={"args": args},
        ) from e
    except OSError as e:
        raise GitError(f"Failed to run git: {e}", context={"args": args}) from e

    if result.returncode != 0:
        stderr = result.stderr or ""
        message = stderr.strip() or f"git {' '.join(args)} exited with status {result.returncode}"
        raise GitError(message, stderr=stderr, context={"args": args, "returncode": result.returncode})

    return result.stdout


async def run_git(args: list[str], *, cwd: Path | None = None, timeout: float = DEFAULT_TIMEOUT) -> str:
    """
    Run a git command and return its stdout.

    Raises:
        GitError: On non-zero exit or if git cannot be started
        GitTimeoutError: If the command exceeds timeout seconds
    """
    logger.debug(f"git {' '.join(args)}")
    return await asyncio.to_thread(_run_git_sync, args, cwd, timeout)


async def ls_remote(url: str, *refs: str, tags: bool = False) -> str:
    """Raw `git ls-remote` output for url (optionally --tags or specific refs)."""
    args = ["ls-remote"]
    if tags:
        args.append("--tags")
    args.append(url)
    args.extend(refs)
    return await run_git(args, timeout=LS_REMOTE_TIMEOUT)


def cleanup_temp_dir(path: Path) -> None:
    """Remove a clone directory, ignoring anything already gone."""
    shutil.rmtree(path, ignore_errors=True)


def _reset_dir(path: Path) -> None:
    cleanup_temp_dir(path)
    path.mkdir(parents=True, exist_ok=True)


async def clone_source(url: str, ref: str | None = None) -> CloneResult:
    """
    Shallow-clone url (at ref, if given) into a fresh temp directory.

    Transient failures are retried up to MAX_CLONE_ATTEMPTS times with a fixed
    backoff. Authentication failures abort immediately. The temp directory is
    removed before any error is raised.

    Args:
        url: Clone URL
        ref: Branch or tag to check out (None for the default branch)

    Returns:
        CloneResult with the temp directory and resolved HEAD commit

    Raises:
        GitAuthError: If git reports an authentication/permission failure
        GitError: If every attempt failed
    """
    temp_dir = Path(tempfile.mkdtemp(prefix="agntc-"))

    clone_args = ["clone", "--depth", "1"]
    if ref is not None:
        clone_args.extend(["--branch", ref])
    clone_args.extend([url, str(temp_dir)])

    last_error: GitError | None = None

    for attempt in range(1, MAX_CLONE_ATTEMPTS + 1):
        try:
            await run_git(clone_args, timeout=CLONE_TIMEOUT)
            stdout = await run_git(["-C", str(temp_dir), "rev-parse", "HEAD"])
            commit = stdout.strip()
            logger.debug(f"Cloned {url} at {commit}")
            return CloneResult(temp_dir=temp_dir, commit=commit)
        except GitError as e:
            last_error = e
            if is_auth_error(e.stderr):
                cleanup_temp_dir(temp_dir)
                raise GitAuthError(
                    f"git clone failed: {e.message}",
                    stderr=e.stderr,
                    context={"url": url},
                ) from e

            logger.debug(f"Clone attempt {attempt}/{MAX_CLONE_ATTEMPTS} failed for {url}: {e.message}")
            if attempt < MAX_CLONE_ATTEMPTS:
                await asyncio.sleep(RETRY_DELAYS[attempt - 1])
                # git refuses to clone into a non-empty directory
                _reset_dir(temp_dir)
        except BaseException:
            cleanup_temp_dir(temp_dir)
            raise

    cleanup_temp_dir(temp_dir)
    message = last_error.message if last_error else "unknown error"
    raise GitError(
        f"git clone failed after {MAX_CLONE_ATTEMPTS} attempts: {message}",
        stderr=last_error.stderr if last_error else "",
        context={"url": url},
    )


def parse_ls_remote_sha(output: str) -> str | None:
    """First line's sha from ls-remote output, or None if empty."""
    for line in output.splitlines():
        if not line.strip():
            continue
        sha = line.split("\t", 1)[0].strip()
        return sha or None
    return None


def parse_tags(output: str) -> list[str]:
    """Tag names from `ls-remote --tags` output, in remote order, without ^{} entries."""
    tags: list[str] = []
    for line in output.splitlines():
        if not line.strip() or "\t" not in line:
            continue
        ref = line.split("\t", 1)[1].strip()
        if ref.endswith("^{}"):
            continue
        tags.append(ref.removeprefix("refs/tags/"))
    return tags
