"""Navigation and mutation API.

``WorkspaceManager`` composes the stores, the path translator and the
materializer into the user-facing operations.  Single requests (``add``,
``remove``, ``resolve_path``) raise on failure; bulk requests (``clone``,
``pull``, ``push``, ``commit``) always complete and return a ``BulkResult`` tally.

Collaborators are passed in explicitly through ``Providers``.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from muno.workspace.constants import CONFIG_FILE_NAME, DEFAULT_REPOS_DIR, REPO_MARKER
from muno.workspace.errors import (
    DuplicateNodeError,
    InvalidNodeError,
    MunoError,
    NodeNotFoundError,
    NotInitializedError,
    WorkspaceExistsError,
)
from muno.workspace.git import GitError, GitProvider
from muno.workspace.models.config import (
    NodeDeclaration,
    WorkspaceConfig,
    WorkspaceSection,
    repo_name_from_url,
    resolve_lazy,
)
from muno.workspace.models.enums import FetchMode
from muno.workspace.models.node import ROOT_PATH, NodeInfo, basename, join, normalize, repository_node, segments
from muno.workspace.resolution.expander import BulkResult, Materializer
from muno.workspace.resolution.paths import NodeLocation, PathTranslator
from muno.workspace.resolution.references import ConfigReferenceResolver
from muno.workspace.settings import MunoSettings, get_settings
from muno.workspace.store.base import ConfigStore, TreeStore
from muno.workspace.store.config import YamlConfigStore, find_config_file
from muno.workspace.store.local import LocalTreeStore
from muno.workspace.ui import UserInterface


@dataclass
class Providers:
    """Collaborators consumed by the manager."""

    git: GitProvider
    ui: UserInterface
    configs: ConfigStore = field(default_factory=YamlConfigStore)
    tree: TreeStore | None = None
    """Defaults to a ``LocalTreeStore`` under the workspace root."""


@dataclass
class AddOptions:
    fetch: FetchMode = FetchMode.AUTO
    name: str | None = None
    branch: str | None = None
    recursive: bool = False


class WorkspaceManager:
    """User-facing operations on one workspace."""

    def __init__(self, root: str | Path, providers: Providers, settings: MunoSettings | None = None) -> None:
        self._root = Path(os.path.abspath(root))
        self._settings = settings or get_settings()
        self._git = providers.git
        self._ui = providers.ui
        self._configs = providers.configs
        self._tree = providers.tree or LocalTreeStore(self._root, self._settings.state_file)
        self._resolver = ConfigReferenceResolver(self._root)
        self._translator = PathTranslator(self._root, self._tree, self._configs, self._resolver)
        self._materializer = Materializer(
            self._translator,
            self._tree,
            self._git,
            self._resolver,
            eager_patterns=self._settings.eager_patterns,
            clone_depth=self._settings.clone_depth,
        )
        self._config: WorkspaceConfig | None = None
        self._config_file = self._root / CONFIG_FILE_NAME

    # -- Accessors -------------------------------------------------------------

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> WorkspaceConfig:
        if self._config is None:
            raise NotInitializedError()
        return self._config

    @property
    def ui(self) -> UserInterface:
        return self._ui

    @property
    def translator(self) -> PathTranslator:
        return self._translator

    @property
    def materializer(self) -> Materializer:
        return self._materializer

    @property
    def tree_store(self) -> TreeStore:
        return self._tree

    # -- Lifecycle -------------------------------------------------------------

    def initialize(self) -> None:
        """Load the root configuration and the tree, then sync top-level clone state."""
        self._config_file = find_config_file(self._root) or self._root / CONFIG_FILE_NAME
        self._config = self._configs.load(self._config_file)
        self._translator.bind(self._config)
        self._tree.load(self._config)
        self._sync_top_level()
        logger.debug("Workspace '{}' loaded from {}", self._config.name, self._config_file)

    def _sync_top_level(self) -> None:
        declared = {child.name: child for child in self._materializer.declared_children(ROOT_PATH)}
        for known in self._tree.get(ROOT_PATH).children:
            if known.name not in declared:
                logger.debug("Dropping {} (no longer declared)", known.path)
                self._tree.remove(known.path)

        for name, child in declared.items():
            if not self._tree.exists(child.path):
                self._tree.add(ROOT_PATH, child)
                continue
            if not child.is_repository:
                continue
            cloned = (self._translator.compute_filesystem_path(child.path) / REPO_MARKER).exists()
            if cloned == child.is_cloned:
                continue
            declaration = self.config.find(name)
            lazy = False if cloned else bool(declaration and declaration.resolve_lazy(self._settings.eager_patterns))
            self._tree.update(child.path, child.model_copy(update={"is_cloned": cloned, "is_lazy": lazy}))

    def _require_initialized(self, operation: str) -> None:
        if self._config is None:
            raise NotInitializedError(operation)

    # -- Navigation ------------------------------------------------------------

    def current_path(self, cwd: str | Path | None = None) -> str:
        """Logical path of ``cwd`` (default: the process working directory)."""
        self._require_initialized("resolve the current path")
        logical = self._translator.resolve_tree_path(Path(cwd) if cwd is not None else Path.cwd())
        if self._tree.exists(logical) and self._tree.current != logical:
            self._tree.set_current(logical)
        return logical

    def resolve_logical(self, target: str, cwd: str | Path | None = None) -> str:
        """Interpret a navigation token against the current position."""
        if target in ("", ROOT_PATH, "~"):
            return ROOT_PATH
        if target.startswith("~/"):
            return normalize(target[1:])
        if target.startswith(ROOT_PATH):
            return normalize(target)
        return normalize(join(self.current_path(cwd), target))

    def resolve_path(self, target: str, ensure: bool = False, cwd: str | Path | None = None) -> Path:
        """Physical directory for ``target``, materializing it when ``ensure``.

        Targets not yet in the tree are established by expanding the nearest
        known ancestor downwards; lazy repositories on that chain are cloned
        so their nested declarations become visible.  The target itself is
        cloned only when ``ensure``.  Raises ``NodeNotFoundError`` when no
        ancestor declares it.
        """
        self._require_initialized("resolve paths")
        logical = self._establish(self.resolve_logical(target, cwd))
        if ensure:
            node = self._tree.get(logical)
            if node.is_repository and not node.is_cloned:
                self._materializer.clone_node(node)
        return self._translator.compute_filesystem_path(logical)

    def _establish(self, logical: str) -> str:
        if self._tree.exists(logical):
            return logical

        parts = segments(logical)
        known = ROOT_PATH
        depth = 0
        for depth, name in enumerate(parts):
            candidate = join(known, name)
            if not self._tree.exists(candidate):
                break
            known = candidate

        for name in parts[depth:]:
            children = self._materializer.expand(known, include_lazy=True)
            if not any(child.name == name for child in children):
                raise NodeNotFoundError(logical)
            known = join(known, name)
        return known

    def tree(self, path: str = ROOT_PATH) -> NodeInfo:
        self._require_initialized("show the tree")
        return self._tree.get(self._establish(self.resolve_logical(path)))

    # -- Mutation --------------------------------------------------------------

    def add(self, url: str, options: AddOptions | None = None, cwd: str | Path | None = None) -> NodeInfo:
        """Declare a repository under the current position and clone it unless lazy."""
        self._require_initialized("add")
        options = options or AddOptions()
        parent = self._establish(self.current_path(cwd))
        name = options.name or repo_name_from_url(url)
        try:
            declaration = NodeDeclaration(name=name, url=url, fetch=options.fetch, branch=options.branch)
        except ValidationError as exc:
            raise InvalidNodeError(name, "; ".join(error["msg"] for error in exc.errors())) from exc
        path = join(parent, name)
        if self._tree.exists(path):
            raise DuplicateNodeError(path)

        config, config_file = self._governing_config(parent)
        config.add_node(declaration)
        lazy = resolve_lazy(options.fetch, name, self._settings.eager_patterns)
        node = repository_node(path, url, lazy=lazy, branch=options.branch)
        self._tree.add(parent, node)

        if not lazy:
            try:
                node = self._materializer.clone_node(node, recursive=options.recursive)
            except GitError:
                self._tree.remove(path)
                config.remove_node(name)
                raise

        self._configs.save(config_file, config)
        logger.info("Added {} ({})", path, "lazy" if node.is_lazy else "cloned")
        return node

    def remove(self, name: str, cwd: str | Path | None = None) -> bool:
        """Remove a child of the current position.  Returns False when not confirmed."""
        self._require_initialized("remove")
        parent = self._establish(self.current_path(cwd))
        path = join(parent, name)
        if not self._tree.exists(path):
            raise NodeNotFoundError(path)
        node = self._tree.get(path)

        if not self._ui.confirm(f"Remove {name} and all its contents?"):
            self._ui.info("Removal cancelled")
            return False

        directory = self._translator.compute_filesystem_path(path)
        config, config_file = self._governing_config(parent)
        if (node.is_cloned or node.is_config_reference) and directory.exists():
            try:
                shutil.rmtree(directory)
            except OSError as exc:
                logger.debug("rmtree {} failed: {}", directory, exc)
                self._ui.warning(f"Could not delete {directory}: {exc}")

        self._tree.remove(path)
        if config.remove_node(name):
            self._configs.save(config_file, config)
        logger.info("Removed {}", path)
        return True

    def _governing_config(self, logical: str) -> tuple[WorkspaceConfig, Path]:
        """Configuration that declares the children of ``logical``, and where it lives."""
        if logical == ROOT_PATH:
            return self.config, self._config_file

        location = self._translator.locate(logical)
        if location.config is not None and isinstance(location.config_file, Path):
            return location.config, location.config_file
        if location.error is not None:
            raise location.error
        return self._new_nested_config(logical, location)

    def _new_nested_config(self, logical: str, location: NodeLocation) -> tuple[WorkspaceConfig, Path]:
        node = self._tree.get(logical)
        if not (node.is_repository and node.is_cloned):
            msg = f"Cannot add children under '{logical}': it is not materialized"
            raise MunoError(msg)
        config = WorkspaceConfig(workspace=WorkspaceSection(name=basename(logical), repos_dir=DEFAULT_REPOS_DIR))
        return config, location.directory / CONFIG_FILE_NAME

    # -- Bulk ------------------------------------------------------------------

    def clone(self, path: str = ".", *, recursive: bool = False, include_lazy: bool = False) -> BulkResult:
        self._require_initialized("clone")
        logical = self._establish(self.resolve_logical(path))
        result = self._materializer.clone(logical, recursive=recursive, include_lazy=include_lazy)
        logger.info("Clone {}: {} succeeded, {} failed", logical, len(result.succeeded), len(result.failed))
        return result

    def preview_clone(self, path: str = ".", *, recursive: bool = False, include_lazy: bool = False) -> list[NodeInfo]:
        self._require_initialized("preview clone")
        logical = self._establish(self.resolve_logical(path))
        return self._materializer.collect(logical, recursive=recursive, include_lazy=include_lazy)

    def pull(
        self, path: str = ".", *, recursive: bool = False, include_lazy: bool = False, force: bool = False
    ) -> BulkResult:
        self._require_initialized("pull")
        logical = self._establish(self.resolve_logical(path))
        result = self._materializer.pull(logical, recursive=recursive, include_lazy=include_lazy, force=force)
        logger.info("Pull {}: {} succeeded, {} failed", logical, len(result.succeeded), len(result.failed))
        return result

    def push(self, path: str = ".", *, recursive: bool = False) -> BulkResult:
        self._require_initialized("push")
        logical = self._establish(self.resolve_logical(path))
        result = self._materializer.push(logical, recursive=recursive)
        logger.info("Push {}: {} succeeded, {} failed", logical, len(result.succeeded), len(result.failed))
        return result

    def commit(self, message: str, path: str = ".", *, recursive: bool = False) -> BulkResult:
        """Commit local changes of cloned repositories under ``path``."""
        self._require_initialized("commit")
        logical = self._establish(self.resolve_logical(path))
        result = self._materializer.commit(logical, message, recursive=recursive)
        logger.info("Commit {}: {} succeeded, {} failed", logical, len(result.succeeded), len(result.failed))
        return result

    def status(self, path: str = ".", *, recursive: bool = True) -> list[NodeInfo]:
        """Refresh ``has_local_changes`` of cloned repositories under ``path``."""
        self._require_initialized("status")
        root = self._tree.get(self._establish(self.resolve_logical(path)))
        pending = [root]
        checked: list[NodeInfo] = []
        while pending:
            node = pending.pop(0)
            if node is root or recursive:
                pending.extend(node.children)
            if not (node.is_repository and node.is_cloned):
                continue
            directory = self._translator.compute_filesystem_path(node.path)
            try:
                dirty = self._git.has_changes(directory)
            except GitError as exc:
                logger.warning("Status failed for {}: {}", node.path, exc)
                continue
            updated = node.without_children().model_copy(update={"has_local_changes": dirty})
            self._tree.update(node.path, updated)
            checked.append(updated)
        return checked


# -- Workspace discovery -------------------------------------------------------


def init_workspace(root: str | Path, name: str | None = None, configs: ConfigStore | None = None) -> Path:
    """Write a default ``muno.yaml`` into ``root``.  Raises ``WorkspaceExistsError``."""
    root = Path(root)
    existing = find_config_file(root)
    if existing is not None:
        raise WorkspaceExistsError(existing)
    config = WorkspaceConfig.default(name or root.resolve().name)
    location = root / CONFIG_FILE_NAME
    (configs or YamlConfigStore()).save(location, config)
    (root / config.child_dir).mkdir(parents=True, exist_ok=True)
    logger.info("Initialized workspace '{}' at {}", config.name, root)
    return location


def find_workspace_root(start: str | Path | None = None) -> Path | None:
    """Outermost directory at or above ``start`` holding a regular configuration file.

    Linked configurations inside materialized nodes are symlinks and never
    count; nested workspaces lose to the outermost one.
    """
    current = Path(os.path.abspath(start if start is not None else Path.cwd()))
    found: Path | None = None
    for directory in (current, *current.parents):
        config_file = find_config_file(directory)
        if config_file is not None and not config_file.is_symlink():
            found = directory
    return found
