"""In-memory tree store.

Nodes are held in a flat ``path -> NodeInfo`` map (payload only, no
children) plus an ordered child-name list per path.  Subtrees are assembled
on read so callers never share mutable state with the store.
"""

from __future__ import annotations

from muno.workspace.errors import DuplicateNodeError, NodeNotFoundError
from muno.workspace.models.config import WorkspaceConfig
from muno.workspace.models.node import ROOT_PATH, NodeInfo, is_ancestor, join, normalize, root_node


class MemoryTreeStore:
    """In-memory implementation of the TreeStore protocol."""

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._nodes: dict[str, NodeInfo] = {ROOT_PATH: root_node()}
        self._children: dict[str, list[str]] = {ROOT_PATH: []}
        self._current = ROOT_PATH

    def load(self, config: WorkspaceConfig) -> None:
        # Children are registered by expansion, not here.
        self._nodes[ROOT_PATH] = self._nodes[ROOT_PATH].model_copy(update={"name": config.name})

    # -- Read ------------------------------------------------------------------

    def get(self, path: str) -> NodeInfo:
        path = normalize(path)
        if path not in self._nodes:
            raise NodeNotFoundError(path)
        return self._assemble(path)

    def exists(self, path: str) -> bool:
        return normalize(path) in self._nodes

    def get_tree(self) -> NodeInfo:
        return self._assemble(ROOT_PATH)

    def children_of(self, path: str) -> list[str]:
        """Logical paths of the direct children of ``path``, in insertion order."""
        path = normalize(path)
        if path not in self._nodes:
            raise NodeNotFoundError(path)
        return [join(path, name) for name in self._children.get(path, [])]

    def _assemble(self, path: str) -> NodeInfo:
        node = self._nodes[path].model_copy(deep=True)
        node.children = [self._assemble(child) for child in self.children_of(path)]
        return node

    # -- Write -----------------------------------------------------------------

    def add(self, parent_path: str, node: NodeInfo) -> None:
        self._insert(normalize(parent_path), node)

    def _insert(self, parent_path: str, node: NodeInfo) -> None:
        if parent_path not in self._nodes:
            raise NodeNotFoundError(parent_path)
        path = join(parent_path, node.name)
        if path in self._nodes:
            raise DuplicateNodeError(path)
        self._nodes[path] = node.model_copy(update={"path": path, "children": []}, deep=True)
        self._children[path] = []
        self._children[parent_path].append(node.name)
        # Nested children passed in with the node are registered too.
        for child in node.children:
            self._insert(path, child)

    def update(self, path: str, node: NodeInfo) -> None:
        path = normalize(path)
        if path not in self._nodes:
            raise NodeNotFoundError(path)
        self._nodes[path] = node.model_copy(update={"path": path, "children": []}, deep=True)

    def remove(self, path: str) -> None:
        path = normalize(path)
        if path == ROOT_PATH:
            msg = "cannot remove the workspace root"
            raise ValueError(msg)
        if path not in self._nodes:
            raise NodeNotFoundError(path)
        for known in [p for p in self._nodes if is_ancestor(path, p)]:
            del self._nodes[known]
            self._children.pop(known, None)
        parent, _, name = path.rpartition("/")
        siblings = self._children[parent or ROOT_PATH]
        siblings.remove(name)
        if is_ancestor(path, self._current):
            self._current = parent or ROOT_PATH

    # -- Position --------------------------------------------------------------

    @property
    def current(self) -> str:
        return self._current

    def set_current(self, path: str) -> None:
        path = normalize(path)
        if path not in self._nodes:
            raise NodeNotFoundError(path)
        self._current = path
