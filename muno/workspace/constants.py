"""Well-known names shared by the configuration, path and materialization layers."""

from __future__ import annotations

DEFAULT_REPOS_DIR = "repos"
"""Child-directory name used when a configuration does not set ``repos_dir``."""

DEFAULT_WORKSPACE_NAME = "muno-workspace"

CONFIG_FILE_NAME = "muno.yaml"
"""Primary configuration file name; linked configs are always written under it."""

CONFIG_FILE_NAMES = ("muno.yaml", ".muno.yaml", "muno.yml", ".muno.yml")
"""Names probed, in order, when discovering a configuration inside a directory."""

STATE_FILE_NAME = ".muno-state.json"

REPO_MARKER = ".git"

REMOTE_SCHEMES = ("http://", "https://")

EAGER_PATTERNS = (
    "-monorepo",
    "-munorepo",
    "-muno",
    "-metarepo",
    "-platform",
    "-workspace",
    "-root-repo",
)
"""Name suffixes of aggregation repositories, fetched eagerly under ``fetch: auto``."""
