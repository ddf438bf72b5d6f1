"""Configuration reference resolution.

A ``file:`` declaration may be absolute, remote (``http(s)://``), or relative.
Relative references are tried against, in order:

1. the real directory of the configuration file that declares them, when it
   is not the workspace root (a linked config keeps resolving against its
   original location);
2. the workspace root;
3. the parent of the workspace root (sibling team layouts such as
   ``../team/muno.yaml``).

When no candidate exists the workspace-root candidate is returned, so callers
always receive a well-formed location.
"""

from __future__ import annotations

from pathlib import Path

from muno.workspace.constants import REMOTE_SCHEMES


def is_remote(ref: str | Path) -> bool:
    return isinstance(ref, str) and ref.startswith(REMOTE_SCHEMES)


class ConfigReferenceResolver:
    """Turn a declared ``file:`` reference into a loadable location."""

    def __init__(self, workspace_root: str | Path) -> None:
        self._root = Path(workspace_root)

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, ref: str, context: Path | None = None) -> Path | str:
        """Resolve ``ref``; ``context`` is the referring config's real directory.

        Remote references come back unchanged as ``str``; everything else as
        a ``Path``.
        """
        if is_remote(ref):
            return ref
        path = Path(ref)
        if path.is_absolute():
            return path

        for candidate in self._candidates(path, context):
            if candidate.exists():
                return candidate
        return self._root / path

    def _candidates(self, path: Path, context: Path | None) -> list[Path]:
        candidates: list[Path] = []
        if context is not None and not _same_dir(context, self._root):
            candidates.append(context / path)
        candidates.append(self._root / path)
        candidates.append(self._root.parent / path)
        return candidates


def _same_dir(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()
