"""Logical <-> physical path translation.

The physical location of segment *n* depends on the effective child
directory of segment *n-1*, which is only known by reading whichever
configuration governs that ancestor.  For each ancestor, in order:

(a) a configuration reference (known to the tree store, or declared as
    ``file:`` by the parent's config): the referenced config's ``repos_dir``;
(b) a configuration file directly inside the ancestor's directory: its
    ``repos_dir``;
(c) a ``.git`` marker: the default ``repos``;
(d) otherwise: no injected directory, the next segment is appended directly.

Both directions share one walk (``locate``) and nothing is cached between
calls, since configuration files may change under us.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from muno.workspace.constants import CONFIG_FILE_NAME, DEFAULT_REPOS_DIR, REPO_MARKER
from muno.workspace.errors import ConfigLoadError, NotInitializedError, PathOutsideWorkspaceError
from muno.workspace.models.config import NodeDeclaration, WorkspaceConfig
from muno.workspace.models.enums import NodeKind
from muno.workspace.models.node import ROOT_PATH, join, segments
from muno.workspace.resolution.references import ConfigReferenceResolver, is_remote
from muno.workspace.store.base import ConfigStore, TreeStore
from muno.workspace.store.config import find_config_file


@dataclass
class NodeLocation:
    """Result of walking to one logical path."""

    path: str
    directory: Path
    declaration: NodeDeclaration | None = None
    config: WorkspaceConfig | None = None
    """Configuration governing this node's children, if any."""
    config_file: Path | str | None = None
    """Real (symlink-dereferenced) location of ``config``."""
    child_dir: str | None = None
    """Injected directory for children; ``None`` means none (rule d)."""
    error: ConfigLoadError | None = None
    is_config_reference: bool = False

    @property
    def children_directory(self) -> Path:
        if not self.child_dir or self.child_dir == ".":
            return self.directory
        return self.directory / self.child_dir

    @property
    def config_dir(self) -> Path | None:
        """Directory relative references in ``config`` resolve against."""
        if isinstance(self.config_file, Path):
            return self.config_file.parent
        return None


class PathTranslator:
    """Bidirectional logical/physical mapping for one workspace."""

    def __init__(
        self,
        root: str | Path,
        tree: TreeStore,
        configs: ConfigStore,
        resolver: ConfigReferenceResolver | None = None,
        config: WorkspaceConfig | None = None,
    ) -> None:
        self._root = Path(os.path.abspath(root))
        self._tree = tree
        self._configs = configs
        self._resolver = resolver or ConfigReferenceResolver(self._root)
        self._config = config

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> WorkspaceConfig:
        if self._config is None:
            raise NotInitializedError("translate paths")
        return self._config

    def bind(self, config: WorkspaceConfig) -> None:
        """Attach the loaded root configuration (the same object the manager mutates)."""
        self._config = config

    # -- Walk ------------------------------------------------------------------

    def locate(self, logical: str) -> NodeLocation:
        """Walk from the root to ``logical``, evaluating each level's child directory."""
        location = self._root_location()
        for name in segments(logical):
            location = self._child_location(location, name)
        return location

    def _root_location(self) -> NodeLocation:
        config = self.config
        config_file = self._root / CONFIG_FILE_NAME
        return NodeLocation(
            path=ROOT_PATH,
            directory=self._root,
            config=config,
            config_file=config_file.resolve(),
            child_dir=config.child_dir,
        )

    def _child_location(self, parent: NodeLocation, name: str) -> NodeLocation:
        declaration = parent.config.find(name) if parent.config is not None else None
        location = NodeLocation(
            path=join(parent.path, name),
            directory=parent.children_directory / name,
            declaration=declaration,
        )

        source = self._reference_source(location.path, declaration, parent.config_dir)
        if source is not None:
            # (a) configuration reference
            location.is_config_reference = True
            self._apply_config(location, source)
            return location

        config_file = find_config_file(location.directory)
        if config_file is not None:
            # (b) nested workspace materialized in place
            self._apply_config(location, config_file)
        elif (location.directory / REPO_MARKER).exists():
            # (c) plain repository
            location.child_dir = DEFAULT_REPOS_DIR
        return location

    def _reference_source(
        self, path: str, declaration: NodeDeclaration | None, context: Path | None
    ) -> Path | str | None:
        if self._tree.exists(path):
            node = self._tree.get(path)
            if node.kind is NodeKind.CONFIG_REFERENCE and node.source:
                return self._resolver.resolve(node.source, context)
            if node.kind is NodeKind.REPOSITORY:
                return None
        if declaration is not None and declaration.file:
            return self._resolver.resolve(declaration.file, context)
        return None

    def _apply_config(self, location: NodeLocation, source: Path | str) -> None:
        location.config_file = source if is_remote(source) else Path(source).resolve()
        try:
            location.config = self._configs.load(source)
        except ConfigLoadError as exc:
            logger.debug("No child directory override for {}: {}", location.path, exc)
            location.error = exc
            location.child_dir = DEFAULT_REPOS_DIR
            return
        location.child_dir = location.config.child_dir

    # -- Logical -> physical ---------------------------------------------------

    def compute_filesystem_path(self, logical: str) -> Path:
        """Physical directory of ``logical``.  The root maps to the workspace root."""
        return self.locate(logical).directory

    # -- Physical -> logical ---------------------------------------------------

    def resolve_tree_path(self, physical: str | Path) -> str:
        """Logical path of the node owning ``physical``.

        Symlinks are followed when the real target lies inside the workspace;
        otherwise the lexical path is used.  The path need not exist.  Raises
        ``PathOutsideWorkspaceError`` for paths outside the workspace.
        """
        location = self._root_location()
        parts = self._relative_parts(Path(physical))

        index = 0
        while index < len(parts):
            injected = _dir_parts(location.child_dir)
            if injected:
                if tuple(parts[index : index + len(injected)]) != injected:
                    # Inside the node's own content, not under its children.
                    return location.path
                index += len(injected)
                if index == len(parts):
                    return location.path
            location = self._child_location(location, parts[index])
            index += 1
        return location.path

    def _relative_parts(self, physical: Path) -> tuple[str, ...]:
        lexical = Path(os.path.abspath(physical))
        real_root = self._root.resolve()
        try:
            return lexical.resolve().relative_to(real_root).parts
        except ValueError:
            pass
        for base in (self._root, real_root):
            try:
                return lexical.relative_to(base).parts
            except ValueError:
                continue
        raise PathOutsideWorkspaceError(physical, self._root)


def _dir_parts(child_dir: str | None) -> tuple[str, ...]:
    if not child_dir:
        return ()
    return tuple(part for part in Path(child_dir).parts if part != ".")
