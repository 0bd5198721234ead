"""Exceptions raised by the installation engine.

Every error carries a human-readable message plus an optional context dict
(paths, keys, stderr) for the calling layer to render.
"""


class AgntcError(Exception):
    """Root of every error raised while installing, updating or removing packages."""

    def __init__(self, message: str, context: dict | None = None):
        """
        Args:
            message: What went wrong, ready to show to the user
            context: Manifest keys, paths or git stderr relevant to the failure
        """
        super().__init__(message)
        self.message = message
        self.context = context if context is not None else {}


class ConfigError(AgntcError):
    """agntc.json is malformed or missing required fields."""


class SourceError(AgntcError):
    """Source identifier could not be parsed or local path is unusable."""


class GitError(AgntcError):
    """A git subprocess failed."""

    def __init__(self, message: str, stderr: str = "", context: dict | None = None):
        super().__init__(message, context)
        self.stderr = stderr


class GitAuthError(GitError):
    """Git reported an authentication or permission failure (not retried)."""


class GitTimeoutError(GitError):
    """A git subprocess exceeded its timeout."""


class InstallError(AgntcError):
    """A fresh installation failed after rollback."""


class NotInstalledError(AgntcError):
    """Requested key matches nothing in the manifest."""
