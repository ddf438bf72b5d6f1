"""Recursive expansion and materialization of the workspace tree.

``visit`` is the depth-first walk: make the node's directory, link or clone
its content, then (when recursive) read any configuration found inside it,
register the declared children and visit each of them.  Failures are logged
per node and never abort siblings.

``clone``, ``collect``, ``pull``, ``push`` and ``commit`` are the bulk shapes
used by the CLI: the target's declared children are always considered,
deeper levels only when ``recursive``.  All variants share ``_action`` so
classification and skip rules cannot drift apart:

- an already-cloned repository is never cloned again;
- a lazy repository is cloned only with ``include_lazy``;
- an unmaterialized repository has no discoverable children.

Each call returns its own ``BulkResult``; callers merge.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from loguru import logger

from muno.workspace.constants import CONFIG_FILE_NAME, EAGER_PATTERNS, REPO_MARKER
from muno.workspace.errors import MunoError
from muno.workspace.git import CloneOptions, GitError, GitProvider, apply_transport
from muno.workspace.models.config import NodeDeclaration
from muno.workspace.models.enums import NodeKind
from muno.workspace.models.node import NodeInfo, config_reference_node, join, repository_node
from muno.workspace.resolution.paths import NodeLocation, PathTranslator
from muno.workspace.resolution.references import ConfigReferenceResolver, is_remote
from muno.workspace.store.base import TreeStore


@dataclass
class BulkResult:
    """Tally of a bulk walk."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)

    def merge(self, other: BulkResult) -> BulkResult:
        self.succeeded.extend(other.succeeded)
        self.failed.update(other.failed)
        self.skipped.extend(other.skipped)
        return self

    @property
    def ok(self) -> bool:
        return not self.failed


class _Action(Enum):
    LINK = "link"
    CLONE = "clone"
    SKIP = "skip"
    READY = "ready"


class Materializer:
    """Walks the tree, linking configuration references and cloning repositories."""

    def __init__(
        self,
        translator: PathTranslator,
        tree: TreeStore,
        git: GitProvider,
        resolver: ConfigReferenceResolver | None = None,
        *,
        eager_patterns: Iterable[str] = EAGER_PATTERNS,
        clone_depth: int | None = None,
    ) -> None:
        self._translator = translator
        self._tree = tree
        self._git = git
        self._resolver = resolver or ConfigReferenceResolver(translator.root)
        self._eager_patterns = tuple(eager_patterns)
        self._clone_depth = clone_depth

    # -- Classification --------------------------------------------------------

    @staticmethod
    def _action(node: NodeInfo, include_lazy: bool) -> _Action:
        match node.kind:
            case NodeKind.CONFIG_REFERENCE:
                return _Action.LINK
            case NodeKind.REPOSITORY:
                if node.is_cloned:
                    return _Action.READY
                if node.is_lazy and not include_lazy:
                    return _Action.SKIP
                return _Action.CLONE
            case NodeKind.AGGREGATE:
                return _Action.READY

    def _node_for(self, parent: NodeLocation, declaration: NodeDeclaration) -> NodeInfo:
        """Tree node for a declared child; built from the declaration when unknown."""
        path = join(parent.path, declaration.name)
        if self._tree.exists(path):
            return self._tree.get(path).without_children()

        if declaration.kind is NodeKind.CONFIG_REFERENCE:
            # Relative to the real location of the declaring config, not its link.
            source = self._resolver.resolve(declaration.file or "", parent.config_dir)
            return config_reference_node(path, str(source))

        directory = parent.children_directory / declaration.name
        cloned = (directory / REPO_MARKER).exists()
        return repository_node(
            path,
            declaration.url or "",
            lazy=False if cloned else declaration.resolve_lazy(self._eager_patterns),
            cloned=cloned,
            branch=declaration.branch,
        )

    def declared_children(self, path: str) -> list[NodeInfo]:
        """Children declared by the configuration governing ``path``.  No side effects."""
        location = self._translator.locate(path)
        if location.config is None:
            if location.error is not None:
                logger.warning("Not expanding {}: {}", path, location.error)
            return []
        return [self._node_for(location, declaration) for declaration in location.config.nodes]

    def _register_children(self, path: str) -> list[NodeInfo]:
        children = self.declared_children(path)
        for child in children:
            if not self._tree.exists(child.path):
                self._tree.add(path, child)
                logger.debug("Registered {} ({})", child.path, child.kind)
        return children

    # -- Visit -----------------------------------------------------------------

    def visit(self, path: str, *, recursive: bool = True, include_lazy: bool = False) -> BulkResult:
        """Materialize ``path`` and, when ``recursive``, everything below it."""
        return self._visit(path, include_lazy=include_lazy, expand=recursive, recursive=recursive)

    def clone(self, path: str, *, recursive: bool = False, include_lazy: bool = False) -> BulkResult:
        """Materialize ``path`` and its declared children (all descendants when ``recursive``)."""
        return self._visit(path, include_lazy=include_lazy, expand=True, recursive=recursive)

    def expand(self, path: str, *, include_lazy: bool = False) -> list[NodeInfo]:
        """Materialize ``path`` alone and register, without visiting, its declared children."""
        if not self._materialize(path, include_lazy, BulkResult()):
            return []
        return self._register_children(path)

    def _visit(self, path: str, *, include_lazy: bool, expand: bool, recursive: bool) -> BulkResult:
        report = BulkResult()
        if not self._materialize(path, include_lazy, report) or not expand:
            return report

        for child in self._register_children(path):
            try:
                report.merge(self._visit(child.path, include_lazy=include_lazy, expand=recursive, recursive=recursive))
            except (MunoError, OSError) as exc:
                logger.warning("Skipping {}: {}", child.path, exc)
                report.failed[child.path] = str(exc)
        return report

    def _materialize(self, path: str, include_lazy: bool, report: BulkResult) -> bool:
        """Give ``path`` its content.  Returns whether there is content to descend into."""
        node = self._tree.get(path)
        directory = self._translator.compute_filesystem_path(path)
        directory.mkdir(parents=True, exist_ok=True)

        match self._action(node, include_lazy):
            case _Action.LINK:
                return self._link_config(node, directory)
            case _Action.SKIP:
                logger.debug("Skipping lazy repository {}", path)
                report.skipped.append(path)
                return False
            case _Action.CLONE:
                try:
                    self.clone_node(node)
                except GitError as exc:
                    logger.warning("Clone failed for {}: {}", path, exc)
                    report.failed[path] = str(exc)
                    return False
                report.succeeded.append(path)
                return True
            case _Action.READY:
                return True

    def clone_node(self, node: NodeInfo, *, recursive: bool = False) -> NodeInfo:
        """Clone one repository node and record it as cloned.  Raises ``GitError``."""
        config = self._translator.config
        directory = self._translator.compute_filesystem_path(node.path)
        directory.parent.mkdir(parents=True, exist_ok=True)
        url = apply_transport(node.url or "", config.resolve_override("git.transport"))
        options = CloneOptions(
            branch=node.branch or config.resolve_override("git.default_branch"),
            depth=config.resolve_override("git.shallow_depth", self._clone_depth),
            recursive=recursive,
        )
        logger.info("Cloning {} from {}", node.path, url)
        self._git.clone(url, directory, options)
        cloned = node.model_copy(update={"is_cloned": True, "is_lazy": False})
        self._tree.update(node.path, cloned)
        return cloned

    def _link_config(self, node: NodeInfo, directory: Path) -> bool:
        source = node.source or ""
        if is_remote(source):
            logger.warning("Remote configuration {} for {} is not fetched", source, node.path)
            return False
        real = Path(source).resolve()
        if not real.is_file():
            logger.warning("Configuration {} for {} does not exist", source, node.path)
            return False

        target = directory / CONFIG_FILE_NAME
        if target.is_symlink() and target.resolve() == real:
            return True
        try:
            _remove_existing(target)
            os.symlink(real, target)
        except OSError as exc:
            logger.debug("Symlink {} failed ({}), copying instead", target, exc)
            try:
                _remove_existing(target)
                shutil.copyfile(real, target)
            except OSError as copy_exc:
                logger.warning("Cannot place configuration for {}: {}", node.path, copy_exc)
                return False
        logger.debug("Linked {} -> {}", target, real)
        return True

    # -- Collect ---------------------------------------------------------------

    def collect(self, path: str, *, recursive: bool = False, include_lazy: bool = False) -> list[NodeInfo]:
        """Repositories ``clone`` would clone, without touching disk or the tree store."""
        node = self._tree.get(path).without_children()
        return self._collect(node, include_lazy=include_lazy, expand=True, recursive=recursive)

    def _collect(self, node: NodeInfo, *, include_lazy: bool, expand: bool, recursive: bool) -> list[NodeInfo]:
        match self._action(node, include_lazy):
            case _Action.SKIP:
                return []
            case _Action.CLONE:
                return [node]
            case _Action.LINK | _Action.READY:
                pass
        if not expand:
            return []

        found: list[NodeInfo] = []
        for child in self.declared_children(node.path):
            found.extend(self._collect(child, include_lazy=include_lazy, expand=recursive, recursive=recursive))
        return found

    # -- Pull ------------------------------------------------------------------

    def pull(
        self, path: str, *, recursive: bool = False, include_lazy: bool = False, force: bool = False
    ) -> BulkResult:
        """Pull cloned repositories under ``path``; clone the ones ``clone`` would clone."""
        return self._pull(path, include_lazy=include_lazy, force=force, expand=True, recursive=recursive)

    def _pull(self, path: str, *, include_lazy: bool, force: bool, expand: bool, recursive: bool) -> BulkResult:
        report = BulkResult()
        node = self._tree.get(path)

        if self._action(node, include_lazy) is _Action.READY and node.is_repository:
            directory = self._translator.compute_filesystem_path(path)
            try:
                self._git.pull(directory, force=force)
            except GitError as exc:
                logger.warning("Pull failed for {}: {}", path, exc)
                report.failed[path] = str(exc)
            else:
                report.succeeded.append(path)
        elif not self._materialize(path, include_lazy, report):
            return report

        if not expand:
            return report
        for child in self._register_children(path):
            try:
                pulled = self._pull(
                    child.path, include_lazy=include_lazy, force=force, expand=recursive, recursive=recursive
                )
                report.merge(pulled)
            except (MunoError, OSError) as exc:
                logger.warning("Skipping {}: {}", child.path, exc)
                report.failed[child.path] = str(exc)
        return report


    # -- Push / commit ---------------------------------------------------------

    def push(self, path: str, *, recursive: bool = False) -> BulkResult:
        """Push cloned repositories under ``path``.  Nothing is cloned or linked."""

        def _push(directory: Path) -> bool:
            self._git.push(directory)
            return True

        node = self._tree.get(path).without_children()
        return self._each_cloned(node, "push", _push, expand=True, recursive=recursive)

    def commit(self, path: str, message: str, *, recursive: bool = False) -> BulkResult:
        """Commit local changes of cloned repositories under ``path``; clean ones are skipped."""

        def _commit(directory: Path) -> bool:
            if not self._git.has_changes(directory):
                return False
            self._git.commit(directory, message)
            return True

        node = self._tree.get(path).without_children()
        return self._each_cloned(node, "commit", _commit, expand=True, recursive=recursive)

    def _each_cloned(
        self,
        node: NodeInfo,
        operation: str,
        run: Callable[[Path], bool],
        *,
        expand: bool,
        recursive: bool,
    ) -> BulkResult:
        report = BulkResult()
        match self._action(node, include_lazy=False):
            case _Action.SKIP | _Action.CLONE:
                report.skipped.append(node.path)
                return report
            case _Action.READY if node.is_repository:
                try:
                    done = run(self._translator.compute_filesystem_path(node.path))
                except GitError as exc:
                    logger.warning("{} failed for {}: {}", operation.capitalize(), node.path, exc)
                    report.failed[node.path] = str(exc)
                else:
                    (report.succeeded if done else report.skipped).append(node.path)
        if not expand:
            return report

        for child in self.declared_children(node.path):
            try:
                report.merge(self._each_cloned(child, operation, run, expand=recursive, recursive=recursive))
            except (MunoError, OSError) as exc:
                logger.warning("Skipping {}: {}", child.path, exc)
                report.failed[child.path] = str(exc)
        return report


def _remove_existing(target: Path) -> None:
    if target.is_symlink() or target.is_file():
        target.unlink()
