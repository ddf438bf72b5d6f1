"""Data models for the workspace engine."""

from muno.workspace.models.config import NodeDeclaration, WorkspaceConfig, WorkspaceSection
from muno.workspace.models.enums import FetchMode, GitTransport, NodeKind
from muno.workspace.models.node import NodeInfo

__all__ = [
    "FetchMode",
    "GitTransport",
    "NodeDeclaration",
    "NodeInfo",
    "NodeKind",
    "WorkspaceConfig",
    "WorkspaceSection",
]
