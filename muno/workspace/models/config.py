"""Workspace configuration models.

One ``WorkspaceConfig`` corresponds to one ``muno.yaml`` file::

    workspace:
      name: platform
      repos_dir: repos          # optional, defaults to "repos"
      overrides:                # optional, free-form
        git:
          transport: ssh
    nodes:
      - name: api
        url: https://github.com/org/api.git
        fetch: lazy             # eager | lazy | auto (default)
      - name: team
        file: ../team/muno.yaml

A node declares exactly one of ``url`` (a repository) or ``file`` (another
workspace configuration).  These are pure models; reading and writing files
is the job of ``muno.workspace.store.config``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

from muno.workspace.constants import DEFAULT_REPOS_DIR, DEFAULT_WORKSPACE_NAME, EAGER_PATTERNS
from muno.workspace.errors import DuplicateNodeError
from muno.workspace.models.enums import FetchMode, NodeKind

# -- Helpers -----------------------------------------------------------------


def repo_name_from_url(url: str) -> str:
    """Last path component of a repository URL without the ``.git`` suffix."""
    trimmed = url.rstrip("/")
    if trimmed.endswith(".git"):
        trimmed = trimmed[: -len(".git")]
    # scp-like ssh URLs use ':' before the path (git@host:org/repo)
    tail = trimmed.rsplit("/", 1)[-1]
    return tail.rsplit(":", 1)[-1]


def is_aggregation_repo(name: str, patterns: Iterable[str] = EAGER_PATTERNS) -> bool:
    """True if ``name`` ends with one of the aggregation-repository suffixes."""
    lowered = name.lower()
    return any(lowered.endswith(pattern.lower()) for pattern in patterns)


def resolve_lazy(mode: FetchMode, name: str, patterns: Iterable[str] = EAGER_PATTERNS) -> bool:
    """Decide whether a repository named ``name`` is lazy under ``mode``."""
    match mode:
        case FetchMode.EAGER:
            return False
        case FetchMode.LAZY:
            return True
        case FetchMode.AUTO:
            return not is_aggregation_repo(name, patterns)


# -- Declarations ------------------------------------------------------------


class NodeDeclaration(BaseModel):
    """A child declared in a configuration file.

    Exactly one of ``url`` or ``file`` must be set.  ``lazy`` is the legacy
    spelling of ``fetch`` and only consulted when ``fetch`` is absent.
    """

    model_config = ConfigDict(extra="ignore")

    name: str
    url: str | None = None
    file: str | None = None
    fetch: FetchMode | None = None
    branch: str | None = None
    lazy: bool | None = None

    @model_validator(mode="after")
    def _validate_variant(self) -> NodeDeclaration:
        if not self.name or "/" in self.name or self.name in (".", ".."):
            msg = f"invalid node name {self.name!r}"
            raise ValueError(msg)
        if self.url and self.file:
            msg = f"node '{self.name}' cannot declare both url and file"
            raise ValueError(msg)
        if not self.url and not self.file:
            msg = f"node '{self.name}' must declare either url or file"
            raise ValueError(msg)
        return self

    @property
    def kind(self) -> NodeKind:
        return NodeKind.REPOSITORY if self.url else NodeKind.CONFIG_REFERENCE

    @property
    def fetch_mode(self) -> FetchMode:
        if self.fetch is not None:
            return self.fetch
        if self.lazy is True:
            return FetchMode.LAZY
        if self.lazy is False:
            return FetchMode.EAGER
        return FetchMode.AUTO

    def resolve_lazy(self, patterns: Iterable[str] = EAGER_PATTERNS) -> bool:
        """Effective laziness.  Configuration references are never lazy."""
        if self.kind is NodeKind.CONFIG_REFERENCE:
            return False
        return resolve_lazy(self.fetch_mode, self.name, patterns)


# -- Configuration file ------------------------------------------------------


class WorkspaceSection(BaseModel):
    """The ``workspace:`` block of a configuration file."""

    model_config = ConfigDict(extra="ignore")

    name: str = DEFAULT_WORKSPACE_NAME
    repos_dir: str | None = Field(
        default=None, description="Directory holding this node's children (default 'repos'; '.' means in place)"
    )
    overrides: dict[str, Any] = Field(default_factory=dict)

    @field_validator("overrides", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return {} if value is None else value


class WorkspaceConfig(BaseModel):
    """A parsed ``muno.yaml``."""

    model_config = ConfigDict(extra="ignore")

    workspace: WorkspaceSection = Field(default_factory=WorkspaceSection)
    nodes: list[NodeDeclaration] = Field(default_factory=list)

    @field_validator("workspace", "nodes", mode="before")
    @classmethod
    def _null_sections(cls, value: Any, info: ValidationInfo) -> Any:
        if value is None:
            return {} if info.field_name == "workspace" else []
        return value

    @model_validator(mode="after")
    def _unique_names(self) -> WorkspaceConfig:
        seen: set[str] = set()
        for node in self.nodes:
            if node.name in seen:
                msg = f"duplicate node name '{node.name}'"
                raise ValueError(msg)
            seen.add(node.name)
        return self

    @classmethod
    def default(cls, name: str = DEFAULT_WORKSPACE_NAME) -> WorkspaceConfig:
        return cls(workspace=WorkspaceSection(name=name, repos_dir=DEFAULT_REPOS_DIR))

    # -- Derived accessors -----------------------------------------------------

    @property
    def name(self) -> str:
        return self.workspace.name

    @property
    def child_dir(self) -> str:
        """Effective child-directory name."""
        return self.workspace.repos_dir or DEFAULT_REPOS_DIR

    def find(self, name: str) -> NodeDeclaration | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def resolve_override(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key (``git.transport``) in ``workspace.overrides``."""
        current: Any = self.workspace.overrides
        for part in key.split("."):
            if not isinstance(current, dict) or part not in current:
                return default
            current = current[part]
        return current

    # -- Mutation --------------------------------------------------------------

    def add_node(self, declaration: NodeDeclaration) -> None:
        if self.find(declaration.name) is not None:
            raise DuplicateNodeError(declaration.name)
        self.nodes.append(declaration)

    def remove_node(self, name: str) -> bool:
        """Drop the declaration called ``name``.  Returns whether one was removed."""
        before = len(self.nodes)
        self.nodes = [node for node in self.nodes if node.name != name]
        return len(self.nodes) != before
