"""Tree store persisted as a JSON snapshot under the workspace root.

Layout::

    {root}/.muno-state.json

The snapshot holds the whole materialized tree and the current position.  It
is rewritten after every mutation so an interrupted walk can be resumed by
re-running the same command.

Writes are atomic: data is written to a temporary file in the same directory,
then renamed to the target path.  This prevents corrupt reads if the process
crashes mid-write.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import BaseModel, ValidationError

from muno.workspace.constants import STATE_FILE_NAME
from muno.workspace.models.config import WorkspaceConfig
from muno.workspace.models.node import ROOT_PATH, NodeInfo
from muno.workspace.store.memory import MemoryTreeStore


class TreeSnapshot(BaseModel):
    """On-disk form of the tree store."""

    current: str = ROOT_PATH
    tree: NodeInfo = NodeInfo()


class LocalTreeStore(MemoryTreeStore):
    """MemoryTreeStore that persists to ``{root}/{state_file}``."""

    def __init__(self, root: str | Path, state_file: str = STATE_FILE_NAME) -> None:
        super().__init__()
        self._path = Path(root) / state_file

    @property
    def path(self) -> Path:
        return self._path

    # -- Load ------------------------------------------------------------------

    def load(self, config: WorkspaceConfig) -> None:
        snapshot = self._read_snapshot()
        if snapshot is not None:
            self._restore(snapshot)
        super().load(config)

    def _read_snapshot(self) -> TreeSnapshot | None:
        if not self._path.exists():
            return None
        try:
            return TreeSnapshot.model_validate_json(self._path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Ignoring unreadable tree state {}: {}", self._path, exc)
            return None

    def _restore(self, snapshot: TreeSnapshot) -> None:
        self._reset()
        self._nodes[ROOT_PATH] = snapshot.tree.without_children()
        for child in snapshot.tree.children:
            self._insert(ROOT_PATH, child)
        if self.exists(snapshot.current):
            self._current = snapshot.current

    # -- Mutations persist -----------------------------------------------------

    def add(self, parent_path: str, node: NodeInfo) -> None:
        super().add(parent_path, node)
        self.save()

    def update(self, path: str, node: NodeInfo) -> None:
        super().update(path, node)
        self.save()

    def remove(self, path: str) -> None:
        super().remove(path)
        self.save()

    def set_current(self, path: str) -> None:
        super().set_current(path)
        self.save()

    def save(self) -> None:
        snapshot = TreeSnapshot(current=self.current, tree=self.get_tree())
        _atomic_write(self._path, snapshot.model_dump_json(indent=2))


# -- Sync helpers --------------------------------------------------------------


def _atomic_write(path: Path, data: str) -> None:
    """Write data atomically: temp file + rename.

    Ensures readers never see a partially-written file.  The temp file is
    created in the same directory so ``os.rename`` is atomic on POSIX.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_path)
        raise
