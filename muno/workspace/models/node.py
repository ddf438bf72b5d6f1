"""Materialized tree node and logical-path helpers.

A ``NodeInfo`` exists only once its parent has been expanded.  Declarations
deeper in the tree stay in their configuration files until something visits
the ancestor that declares them.

Logical paths are ``/``-separated and canonical: ``/`` for the root,
otherwise no trailing slash (``/team/svc``).
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from muno.workspace.models.enums import NodeKind

ROOT_PATH = "/"


class NodeInfo(BaseModel):
    """A node in the logical tree.

    Attributes
    ----------
    name:
        Last segment of ``path`` (the workspace name for the root).
    path:
        Canonical logical path.
    kind:
        ``repository`` (payload ``url``/``is_lazy``/``is_cloned``),
        ``config_reference`` (payload ``source``) or ``aggregate``.
    has_local_changes:
        Advisory dirtiness, refreshed by ``status``.
    """

    name: str = ""
    path: str = ROOT_PATH
    kind: NodeKind = NodeKind.AGGREGATE
    url: str | None = None
    branch: str | None = None
    source: str | None = None
    is_lazy: bool = False
    is_cloned: bool = False
    has_local_changes: bool = False
    children: list[NodeInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_variant(self) -> NodeInfo:
        match self.kind:
            case NodeKind.REPOSITORY:
                if not self.url:
                    msg = f"repository node '{self.path}' requires a url"
                    raise ValueError(msg)
            case NodeKind.CONFIG_REFERENCE:
                if not self.source:
                    msg = f"config reference node '{self.path}' requires a source"
                    raise ValueError(msg)
                if self.is_cloned or self.is_lazy:
                    msg = f"config reference node '{self.path}' cannot be cloned or lazy"
                    raise ValueError(msg)
            case NodeKind.AGGREGATE:
                pass
        return self

    @property
    def is_repository(self) -> bool:
        return self.kind is NodeKind.REPOSITORY

    @property
    def is_config_reference(self) -> bool:
        return self.kind is NodeKind.CONFIG_REFERENCE

    def without_children(self) -> NodeInfo:
        return self.model_copy(update={"children": []})


# ---------------------------------------------------------------------------
# Convenience constructors
# ---------------------------------------------------------------------------


def repository_node(
    path: str, url: str, *, lazy: bool = False, cloned: bool = False, branch: str | None = None
) -> NodeInfo:
    return NodeInfo(
        name=basename(path),
        path=path,
        kind=NodeKind.REPOSITORY,
        url=url,
        branch=branch,
        is_lazy=lazy,
        is_cloned=cloned,
    )


def config_reference_node(path: str, source: str) -> NodeInfo:
    return NodeInfo(name=basename(path), path=path, kind=NodeKind.CONFIG_REFERENCE, source=source)


def root_node() -> NodeInfo:
    return NodeInfo()


# ---------------------------------------------------------------------------
# Logical paths
# ---------------------------------------------------------------------------


def normalize(path: str) -> str:
    """Collapse ``.``/``..``/empty segments and make ``path`` absolute.

    ``..`` above the root stays at the root.
    """
    parts: list[str] = []
    for segment in path.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if parts:
                parts.pop()
            continue
        parts.append(segment)
    return ROOT_PATH + "/".join(parts)


def segments(path: str) -> list[str]:
    return [s for s in normalize(path).split("/") if s]


def join(parent: str, name: str) -> str:
    """Child path of ``parent`` without a double slash at the root."""
    if parent == ROOT_PATH:
        return ROOT_PATH + name
    return f"{parent}/{name}"


def parent_of(path: str) -> str:
    parts = segments(path)
    return ROOT_PATH + "/".join(parts[:-1])


def basename(path: str) -> str:
    parts = segments(path)
    return parts[-1] if parts else ""


def is_ancestor(ancestor: str, path: str) -> bool:
    """True if ``ancestor`` is ``path`` or one of its ancestors."""
    if ancestor == ROOT_PATH:
        return True
    return path == ancestor or path.startswith(ancestor + "/")
