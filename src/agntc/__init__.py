"""agntc - Install and update agent assets from git sources into a project.

Public API for the installation/update engine. Apps inject policy (project
directory, driver registry, conflict resolution); this package provides the
mechanism.
"""

from .collisions import check_file_collisions
from .collisions import check_unmanaged_conflicts
from .config import AgntcConfig
from .config import read_config
from .copier import CopyResult
from .copier import NukeResult
from .copier import copy_bare_skill
from .copier import copy_plugin_assets
from .copier import nuke_manifest_files
from .copier import rollback_copied_files
from .detection import DetectedType
from .detection import detect_type
from .drivers import ClaudeDriver
from .drivers import CodexDriver
from .drivers import DriverRegistry
from .drivers import default_registry
from .drivers import detect_agents
from .exceptions import AgntcError
from .exceptions import ConfigError
from .exceptions import GitAuthError
from .exceptions import GitError
from .exceptions import GitTimeoutError
from .exceptions import InstallError
from .exceptions import NotInstalledError
from .exceptions import SourceError
from .git import CloneResult
from .git import clone_source
from .incoming import compute_incoming_files
from .installer import InstallReport
from .installer import install_package
from .installer import install_source
from .installer import resolve_target_keys
from .installer import uninstall
from .manifest import Manifest
from .manifest import ManifestEntry
from .manifest import add_entry
from .manifest import read_manifest
from .manifest import remove_entry
from .manifest import write_manifest
from .protocols import AgentDriver
from .protocols import ConflictResolver
from .reinstall import ReinstallResult
from .reinstall import clone_and_reinstall
from .reinstall import execute_nuke_and_reinstall
from .sources import ParsedSource
from .sources import parse_source
from .sources import resolve_clone_url
from .updates import UpdateCheckResult
from .updates import check_all_for_updates
from .updates import check_for_update

__all__ = [
    # Manifest
    "Manifest",
    "ManifestEntry",
    "read_manifest",
    "write_manifest",
    "add_entry",
    "remove_entry",
    # Sources and git
    "ParsedSource",
    "parse_source",
    "resolve_clone_url",
    "CloneResult",
    "clone_source",
    # Classification and projection
    "AgntcConfig",
    "read_config",
    "DetectedType",
    "detect_type",
    "compute_incoming_files",
    # Collision analysis
    "check_file_collisions",
    "check_unmanaged_conflicts",
    # Copying
    "CopyResult",
    "NukeResult",
    "copy_bare_skill",
    "copy_plugin_assets",
    "rollback_copied_files",
    "nuke_manifest_files",
    # Drivers
    "AgentDriver",
    "ClaudeDriver",
    "CodexDriver",
    "DriverRegistry",
    "default_registry",
    "detect_agents",
    # Install / update / remove
    "ConflictResolver",
    "InstallReport",
    "install_source",
    "install_package",
    "resolve_target_keys",
    "uninstall",
    "ReinstallResult",
    "execute_nuke_and_reinstall",
    "clone_and_reinstall",
    "UpdateCheckResult",
    "check_for_update",
    "check_all_for_updates",
    # Exceptions
    "AgntcError",
    "ConfigError",
    "SourceError",
    "GitError",
    "GitAuthError",
    "GitTimeoutError",
    "InstallError",
    "NotInstalledError",
]

__version__ = "0.1.0"
