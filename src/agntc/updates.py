"""Update checks - Compare an installed ref against its remote.

Ref kinds (recomputed per check, never persisted):
- ref None, commit None  -> local install, no network
- ref None, commit set   -> pinned to remote HEAD
- ref like a tag (v1...) -> look for tags listed after it on the remote
- any other ref          -> branch; compare its head with the installed commit

Checks never raise: every failure becomes a "check-failed" result.
"""

import asyncio
import logging
import re
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field

from .git import ls_remote
from .git import parse_ls_remote_sha
from .git import parse_tags
from .manifest import Manifest
from .manifest import ManifestEntry
from .sources import resolve_clone_url

logger = logging.getLogger(__name__)

UpdateStatus = Literal["local", "up-to-date", "update-available", "newer-tags", "check-failed"]

# Heuristic: matches "v1.2.0", "1.0", not "main" or "feature-x". Tags with
# other prefixes (e.g. "release-1.0") are treated as branches.
_TAG_PATTERN = re.compile(r"^v?\d")


class UpdateCheckResult(BaseModel):
    """Result of one update check."""

    model_config = ConfigDict(frozen=True)

    status: UpdateStatus
    remote_commit: str | None = None
    tags: list[str] = Field(default_factory=list)
    reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> "UpdateCheckResult":
        return cls(status="check-failed", reason=reason)


def is_tag_ref(ref: str) -> bool:
    return _TAG_PATTERN.match(ref) is not None


def find_newer_tags(all_tags: list[str], current_tag: str) -> list[str] | None:
    """Tags listed after current_tag, or None if current_tag is not on the remote."""
    try:
        index = all_tags.index(current_tag)
    except ValueError:
        return None
    return all_tags[index + 1 :]


async def check_for_update(key: str, entry: ManifestEntry) -> UpdateCheckResult:
    """
    Determine whether the remote has moved past an installed entry.

    Args:
        key: Manifest key
        entry: Installed entry

    Returns:
        UpdateCheckResult; never raises
    """
    if entry.ref is None and entry.commit is None:
        return UpdateCheckResult(status="local")

    try:
        url = resolve_clone_url(key, entry.clone_url)

        if entry.ref is None:
            return _compare_sha(await ls_remote(url, "HEAD"), entry.commit, "No HEAD ref found on remote")

        if is_tag_ref(entry.ref):
            return _check_tag(await ls_remote(url, tags=True), entry.ref)

        return _compare_sha(
            await ls_remote(url, f"refs/heads/{entry.ref}"),
            entry.commit,
            f"Branch '{entry.ref}' not found on remote",
        )
    except Exception as e:
        logger.debug(f"Update check failed for {key}: {e}")
        return UpdateCheckResult.failed(str(e))


def _compare_sha(output: str, installed_commit: str | None, missing_reason: str) -> UpdateCheckResult:
    remote_sha = parse_ls_remote_sha(output)
    if remote_sha is None:
        return UpdateCheckResult.failed(missing_reason)
    if remote_sha == installed_commit:
        return UpdateCheckResult(status="up-to-date")
    return UpdateCheckResult(status="update-available", remote_commit=remote_sha)


def _check_tag(output: str, tag: str) -> UpdateCheckResult:
    newer = find_newer_tags(parse_tags(output), tag)
    if newer is None:
        return UpdateCheckResult.failed(f"Tag '{tag}' not found on remote")
    if newer:
        return UpdateCheckResult(status="newer-tags", tags=newer)
    return UpdateCheckResult(status="up-to-date")


async def check_all_for_updates(manifest: Manifest) -> dict[str, UpdateCheckResult]:
    """
    Check every entry concurrently.

    A failure in one check becomes check-failed for that key only.

    Returns:
        Key -> result, in manifest order
    """
    keys = list(manifest)
    if not keys:
        return {}

    async def _check(key: str) -> UpdateCheckResult:
        try:
            return await check_for_update(key, manifest[key])
        except Exception as e:
            return UpdateCheckResult.failed(str(e))

    results = await asyncio.gather(*(_check(key) for key in keys))
    return dict(zip(keys, results, strict=True))
