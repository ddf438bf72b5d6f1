"""YAML configuration I/O.

Reads and writes ``muno.yaml`` files.  Remote locations are recognised but
never fetched: loading one raises ``ConfigLoadError``.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from muno.workspace.constants import CONFIG_FILE_NAMES, REMOTE_SCHEMES
from muno.workspace.errors import ConfigLoadError
from muno.workspace.models.config import WorkspaceConfig


class YamlConfigStore:
    """Filesystem implementation of the ConfigStore protocol."""

    def load(self, location: Path | str) -> WorkspaceConfig:
        if isinstance(location, str) and location.startswith(REMOTE_SCHEMES):
            raise ConfigLoadError(location, "remote configuration retrieval is not supported")
        path = Path(location)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise ConfigLoadError(path, "file not found") from None
        except OSError as exc:
            raise ConfigLoadError(path, str(exc)) from exc

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise ConfigLoadError(path, f"invalid YAML: {exc}") from exc
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigLoadError(path, "top level must be a mapping")

        try:
            return WorkspaceConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigLoadError(path, f"invalid configuration: {exc}") from exc

    def save(self, location: Path, config: WorkspaceConfig) -> None:
        data = config.model_dump(mode="json", exclude_none=True)
        if not data["workspace"].get("overrides"):
            data["workspace"].pop("overrides", None)
        location.parent.mkdir(parents=True, exist_ok=True)
        location.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")

    def exists(self, location: Path | str) -> bool:
        if isinstance(location, str) and location.startswith(REMOTE_SCHEMES):
            return False
        return Path(location).is_file()


def find_config_file(directory: Path) -> Path | None:
    """First configuration file directly inside ``directory``, if any."""
    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if candidate.is_file():
            return candidate
    return None
