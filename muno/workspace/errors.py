"""Domain exceptions for workspace resolution.

Every exception subclasses ``MunoError`` plus the closest builtin so callers
can catch either the domain family or the generic category
(``LookupError``, ``ValueError``, ``RuntimeError``).  Version-control failures
live next to the git collaborator in ``muno.workspace.git``.
"""

from __future__ import annotations


class MunoError(Exception):
    """Base class for all workspace errors surfaced to the CLI."""


class NotInitializedError(MunoError, RuntimeError):
    """An operation ran before the workspace configuration was loaded."""

    def __init__(self, operation: str | None = None) -> None:
        if operation:
            super().__init__(f"Workspace not initialized (cannot {operation})")
        else:
            super().__init__("Workspace not initialized")


class NodeNotFoundError(MunoError, LookupError):
    """A logical path is neither known nor declared by any ancestor."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Node '{path}' not found")


class DuplicateNodeError(MunoError, ValueError):
    """A node with the same logical path already exists."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Node '{path}' already exists")


class InvalidNodeError(MunoError, ValueError):
    """A node declaration built from user input does not validate."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid node '{name}': {reason}")


class ConfigLoadError(MunoError, ValueError):
    """A configuration file is missing, unparsable, invalid, or remote."""

    def __init__(self, location: object, reason: str) -> None:
        self.location = location
        self.reason = reason
        super().__init__(f"Cannot load configuration {location}: {reason}")


class WorkspaceExistsError(MunoError, FileExistsError):
    """``init`` was run where a workspace configuration already exists."""

    def __init__(self, location: object) -> None:
        self.location = location
        super().__init__(f"Workspace already initialized at {location}")


class PathOutsideWorkspaceError(MunoError, ValueError):
    """A physical path does not lie inside the workspace root."""

    def __init__(self, path: object, root: object) -> None:
        self.path = path
        self.root = root
        super().__init__(f"Path {path} is outside workspace {root}")
