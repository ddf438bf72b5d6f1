"""Shared test fixtures: a fake git collaborator and on-disk workspaces.

Tests never touch the network.  ``FakeGit`` "clones" by creating the
destination directory with a ``.git`` marker, plus any files registered for
the URL in ``FakeGit.contents`` (e.g. a nested muno.yaml).  Tests that need a
real ``git`` binary are marked ``@pytest.mark.integration``.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest
import yaml

from muno.workspace.git import CloneError, CloneOptions, GitError, PullError
from muno.workspace.manager import Providers, WorkspaceManager
from muno.workspace.models.config import WorkspaceConfig
from muno.workspace.settings import MunoSettings, get_settings
from muno.workspace.store.config import YamlConfigStore


class FakeGit:
    """GitProvider that records calls and fakes checkouts on disk."""

    def __init__(self) -> None:
        self.clones: list[tuple[str, Path, CloneOptions | None]] = []
        self.pulls: list[Path] = []
        self.pushes: list[Path] = []
        self.commits: list[tuple[Path, str]] = []
        self.fail_urls: set[str] = set()
        self.fail_pulls: set[Path] = set()
        self.fail_pushes: set[Path] = set()
        self.dirty: set[Path] = set()
        self.contents: dict[str, dict[str, str]] = {}

    @property
    def cloned_urls(self) -> list[str]:
        return [url for url, _, _ in self.clones]

    def clone(self, url: str, destination: Path, options: CloneOptions | None = None) -> None:
        self.clones.append((url, Path(destination), options))
        if url in self.fail_urls:
            raise CloneError(url, "simulated failure")
        (Path(destination) / ".git").mkdir(parents=True, exist_ok=True)
        for relative, text in self.contents.get(url, {}).items():
            target = Path(destination) / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")

    def pull(self, path: Path, *, force: bool = False) -> None:
        self.pulls.append(Path(path))
        if Path(path) in self.fail_pulls:
            raise PullError(Path(path), "simulated failure")

    def push(self, path: Path) -> None:
        self.pushes.append(Path(path))
        if Path(path) in self.fail_pushes:
            raise GitError("push", path, "simulated failure")

    def commit(self, path: Path, message: str) -> None:
        self.commits.append((Path(path), message))
        self.dirty.discard(Path(path))

    def status(self, path: Path) -> str:
        return ""

    def current_branch(self, path: Path) -> str:
        return "main"

    def remote_url(self, path: Path) -> str:
        return ""

    def has_changes(self, path: Path) -> bool:
        return Path(path) in self.dirty


class StubUI:
    """UserInterface that answers every confirmation with ``answer``."""

    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.prompts: list[str] = []
        self.messages: list[tuple[str, str]] = []

    def confirm(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def success(self, message: str) -> None:
        self.messages.append(("success", message))

    def warning(self, message: str) -> None:
        self.messages.append(("warning", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))


def _write_config(
    path: Path,
    nodes: list[dict[str, Any]] | None = None,
    *,
    name: str = "ws",
    repos_dir: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> Path:
    workspace: dict[str, Any] = {"name": name}
    if repos_dir is not None:
        workspace["repos_dir"] = repos_dir
    if overrides:
        workspace["overrides"] = overrides
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump({"workspace": workspace, "nodes": nodes or []}, sort_keys=False), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop MUNO_* variables and the cached settings around every test."""
    for key in list(os.environ):
        if key.startswith("MUNO_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture
def git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def ui() -> StubUI:
    return StubUI()


@pytest.fixture
def settings() -> MunoSettings:
    return MunoSettings(_env_file=None)


# ---------------------------------------------------------------------------
# Workspaces
# ---------------------------------------------------------------------------


@pytest.fixture
def root(tmp_path: Path) -> Path:
    """Empty workspace root directory."""
    path = tmp_path / "ws"
    path.mkdir()
    return path


@pytest.fixture
def write_config() -> Callable[..., Path]:
    """Write a muno.yaml-shaped file: ``write_config(path, nodes, repos_dir=...)``."""
    return _write_config


@pytest.fixture
def load_config() -> Callable[[Path], WorkspaceConfig]:
    return YamlConfigStore().load


@pytest.fixture
def make_manager(root: Path, git: FakeGit, ui: StubUI, settings: MunoSettings) -> Callable[..., WorkspaceManager]:
    """Build and initialize a manager over ``root`` (which must hold a muno.yaml)."""

    def _make(**provider_overrides: Any) -> WorkspaceManager:
        providers = Providers(git=git, ui=ui, **provider_overrides)
        manager = WorkspaceManager(root, providers, settings)
        manager.initialize()
        return manager

    return _make
