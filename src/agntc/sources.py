"""Source resolution - Parse source identifiers into clone coordinates.

Supported forms:
- owner/repo[@ref]                                (GitHub shorthand)
- https://host/owner/repo[.git][@ref]             (HTTPS URL)
- git@host:owner/repo[.git][@ref]                 (SSH URL)
- https://host/owner/repo/tree/<ref>/<plugin>     (direct path into a collection)
- ./path, ../path, /path, ~/path, ., ..           (local directory)

Local paths never reach the git layer.
"""

import logging
import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict

from .exceptions import SourceError

logger = logging.getLogger(__name__)

SourceKind = Literal["github-shorthand", "https-url", "ssh-url", "direct-path", "local-path"]


class ParsedSource(BaseModel):
    """Clone coordinates for a source (immutable)."""

    model_config = ConfigDict(frozen=True)

    kind: SourceKind
    manifest_key: str
    ref: str | None = None
    owner: str | None = None
    repo: str | None = None
    clone_url: str | None = None
    target_plugin: str | None = None
    resolved_path: Path | None = None

    @property
    def is_local(self) -> bool:
        return self.kind == "local-path"


def github_clone_url(owner: str, repo: str) -> str:
    return f"https://github.com/{owner}/{repo}.git"


def _is_local_path(value: str) -> bool:
    return value.startswith(("./", "../", "/", "~")) or value in (".", "..")


def is_local_key(key: str) -> bool:
    """True if a manifest key names a local directory rather than a git source."""
    return _is_local_path(key)


def parse_source(raw: str) -> ParsedSource:
    """
    Parse a source identifier.

    Args:
        raw: Source string as typed by the user

    Returns:
        ParsedSource with manifest key, ref and clone URL (or resolved local path)

    Raises:
        SourceError: If the string is malformed or a local path is unusable
    """
    value = raw.strip()
    if not value:
        raise SourceError("source cannot be empty")

    if _is_local_path(value):
        return _parse_local_path(value)

    if value.startswith("https://"):
        without_scheme = value[len("https://") :]
        slash = without_scheme.find("/")
        if slash != -1 and "/tree/" in without_scheme[slash:] + "/":
            return _parse_tree_url(value)
        return _parse_https_url(value)

    if value.startswith("git@"):
        return _parse_ssh_url(value)

    return _parse_shorthand(value)


def _parse_local_path(value: str) -> ParsedSource:
    path = Path(value).expanduser().resolve()

    if not path.exists():
        raise SourceError(f"Path {path} does not exist", context={"path": str(path)})
    if not path.is_dir():
        raise SourceError(f"Path {path} is not a directory", context={"path": str(path)})

    return ParsedSource(kind="local-path", manifest_key=str(path), resolved_path=path)


def _split_ref(value: str) -> tuple[str, str | None]:
    if "@" not in value:
        return value, None
    head, ref = value.split("@", 1)
    if not ref:
        raise SourceError("ref cannot be empty when @ is present")
    return head, ref


def _parse_tree_url(value: str) -> ParsedSource:
    if "@" in value:
        raise SourceError("tree URLs cannot have @ref suffix")

    host, _, path = value[len("https://") :].partition("/")
    owner_repo, _, after_tree = path.partition("/tree/")

    segments = [s for s in owner_repo.split("/") if s]
    if len(segments) < 2:
        raise SourceError(f'invalid tree URL: expected owner/repo before /tree/, got "{owner_repo}"')
    owner, repo = segments[0], segments[1]

    tail = [s for s in after_tree.split("/") if s]
    if not tail:
        raise SourceError("invalid tree URL: missing ref and plugin path")
    if len(tail) == 1:
        raise SourceError("invalid tree URL: missing plugin path after ref")

    ref = tail[0]
    target_plugin = "/".join(tail[1:])

    return ParsedSource(
        kind="direct-path",
        manifest_key=f"{owner}/{repo}/{target_plugin}",
        ref=ref,
        owner=owner,
        repo=repo,
        clone_url=f"https://{host}/{owner}/{repo}.git",
        target_plugin=target_plugin,
    )


def _parse_https_url(value: str) -> ParsedSource:
    url_part, ref = _split_ref(value[len("https://") :])
    url_part = url_part.rstrip("/")

    host, slash, path = url_part.partition("/")
    if not slash:
        raise SourceError(f'invalid HTTPS URL: no path segments in "https://{url_part}"')

    path = re.sub(r"\.git$", "", path)
    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        raise SourceError(f'invalid HTTPS URL: expected owner/repo path, got "{path}"')

    owner, repo = segments[-2], segments[-1]
    return ParsedSource(
        kind="https-url",
        manifest_key=f"{owner}/{repo}",
        ref=ref,
        owner=owner,
        repo=repo,
        clone_url=f"https://{host}/{owner}/{repo}.git",
    )


def _parse_ssh_url(value: str) -> ParsedSource:
    host, colon, after_colon = value[len("git@") :].partition(":")
    if not colon:
        raise SourceError(f'invalid SSH URL: expected git@host:owner/repo format, got "{value}"')
    if not after_colon:
        raise SourceError(f'invalid SSH URL: missing owner/repo path in "{value}"')

    ref = None
    if ".git" in after_colon:
        path, _, after_git = after_colon.partition(".git")
        if after_git.startswith("@"):
            ref = after_git[1:]
            if not ref:
                raise SourceError("ref cannot be empty when @ is present")
    else:
        path, ref = _split_ref(after_colon)

    segments = [s for s in path.split("/") if s]
    if len(segments) < 2:
        raise SourceError(f'invalid SSH URL: expected owner/repo path, got "{path}"')

    owner, repo = segments[0], segments[1]
    return ParsedSource(
        kind="ssh-url",
        manifest_key=f"{owner}/{repo}",
        ref=ref,
        owner=owner,
        repo=repo,
        clone_url=f"git@{host}:{owner}/{repo}.git",
    )


def _parse_shorthand(value: str) -> ParsedSource:
    # owner/repo#ref is accepted as a synonym for owner/repo@ref
    if "@" not in value and "#" in value:
        value = value.replace("#", "@", 1)
    path, ref = _split_ref(value)

    segments = path.split("/")
    if len(segments) == 1:
        raise SourceError(f'source must be in owner/repo format, got "{path}"')
    if len(segments) > 2:
        raise SourceError(f'too many slashes in source "{path}" - expected owner/repo')

    owner, repo = segments
    if not owner:
        raise SourceError("owner cannot be empty")
    if not repo:
        raise SourceError("repo cannot be empty")

    return ParsedSource(
        kind="github-shorthand",
        manifest_key=f"{owner}/{repo}",
        ref=ref,
        owner=owner,
        repo=repo,
        clone_url=github_clone_url(owner, repo),
    )


def resolve_clone_url(key: str, stored_url: str | None = None) -> str:
    """
    Clone URL for an installed git package.

    Args:
        key: Manifest key (owner/repo or owner/repo/sub/path)
        stored_url: Explicit clone URL recorded at install time, if any

    Returns:
        stored_url if present, else the GitHub URL derived from the key

    Raises:
        SourceError: If the key is a local path or lacks owner/repo
    """
    if stored_url:
        return stored_url
    if is_local_key(key):
        raise SourceError(f"{key} is a local path and has no clone URL")
    parts = key.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise SourceError(f'cannot derive clone URL from key "{key}"')
    return github_clone_url(parts[0], parts[1])


def default_clone_url_for(source: ParsedSource) -> str | None:
    """Clone URL to record in the manifest (None when derivable from the key)."""
    if source.is_local or source.clone_url is None:
        return None
    derived = github_clone_url(*source.manifest_key.split("/")[:2])
    return None if source.clone_url == derived else source.clone_url


def build_source_from_key(key: str, ref: str | None, clone_url: str | None = None) -> ParsedSource:
    """Rebuild clone coordinates for an installed git package."""
    parts = key.split("/")
    return ParsedSource(
        kind="https-url" if clone_url else "github-shorthand",
        manifest_key=key,
        ref=ref,
        owner=parts[0],
        repo=parts[1] if len(parts) > 1 else None,
        clone_url=resolve_clone_url(key, clone_url),
        target_plugin="/".join(parts[2:]) or None,
    )


def source_dir_from_key(root: Path, key: str) -> Path:
    """Package directory inside a clone: keys with more than two segments address a subdirectory."""
    parts = key.split("/")
    if len(parts) > 2:
        return root.joinpath(*parts[2:])
    return root


def skill_name_for(key: str, source_dir: Path) -> str:
    """
    Directory name a bare skill is installed under.

    Git sources are fetched into randomly named clone directories, so the name
    comes from the last segment of the manifest key (the repo, sub-path or
    collection member). Local sources keep their own directory name.
    """
    if is_local_key(key):
        return source_dir.name
    return key.rstrip("/").rsplit("/", 1)[-1]
