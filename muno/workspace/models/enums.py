"""Shared enumerations used across the workspace engine."""

from __future__ import annotations

from enum import StrEnum

# -- Declarations ------------------------------------------------------------


class FetchMode(StrEnum):
    """When a declared repository is cloned."""

    EAGER = "eager"
    LAZY = "lazy"
    AUTO = "auto"


# -- Tree --------------------------------------------------------------------


class NodeKind(StrEnum):
    """Variant tag of a materialized tree node."""

    REPOSITORY = "repository"
    CONFIG_REFERENCE = "config_reference"
    AGGREGATE = "aggregate"


# -- Git ---------------------------------------------------------------------


class GitTransport(StrEnum):
    """Preferred clone transport, set via ``workspace.overrides.git.transport``."""

    HTTPS = "https"
    SSH = "ssh"
