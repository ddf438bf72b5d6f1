"""Tree and configuration stores."""

from muno.workspace.store.base import ConfigStore, TreeStore
from muno.workspace.store.config import YamlConfigStore, find_config_file
from muno.workspace.store.local import LocalTreeStore
from muno.workspace.store.memory import MemoryTreeStore

__all__ = ["ConfigStore", "LocalTreeStore", "MemoryTreeStore", "TreeStore", "YamlConfigStore", "find_config_file"]
