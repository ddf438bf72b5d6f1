"""Store interfaces for the logical tree and configuration files.

The tree store is an addressable registry of materialized nodes keyed by
logical path.  Its representation is orthogonal to the resolution algorithms,
which only ever go through this protocol.  The config store reads and writes
``muno.yaml`` files.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from muno.workspace.models.config import WorkspaceConfig
from muno.workspace.models.node import NodeInfo


@runtime_checkable
class TreeStore(Protocol):
    """Registry of materialized nodes keyed by logical path.

    ``get`` and ``get_tree`` return detached copies with their subtree
    populated; mutate through ``add``/``update``/``remove``.
    """

    def load(self, config: WorkspaceConfig) -> None:
        """Initialise from the root configuration (no expansion)."""
        ...

    def get(self, path: str) -> NodeInfo:
        """Return the node at ``path``.  Raises ``NodeNotFoundError`` if unknown."""
        ...

    def exists(self, path: str) -> bool: ...

    def add(self, parent_path: str, node: NodeInfo) -> None:
        """Register ``node`` under ``parent_path``.  Raises ``DuplicateNodeError``."""
        ...

    def update(self, path: str, node: NodeInfo) -> None:
        """Replace the node payload at ``path``, keeping its children."""
        ...

    def remove(self, path: str) -> None:
        """Remove ``path`` and its whole subtree.  Raises ``NodeNotFoundError``."""
        ...

    def get_tree(self) -> NodeInfo: ...

    @property
    def current(self) -> str: ...

    def set_current(self, path: str) -> None:
        """Move the current position.  Raises ``NodeNotFoundError`` if unknown."""
        ...


@runtime_checkable
class ConfigStore(Protocol):
    """Load and persist workspace configuration files."""

    def load(self, location: Path | str) -> WorkspaceConfig:
        """Raises ``ConfigLoadError`` when missing, unparsable, invalid or remote."""
        ...

    def save(self, location: Path, config: WorkspaceConfig) -> None: ...

    def exists(self, location: Path | str) -> bool: ...
