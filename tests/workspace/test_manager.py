"""WorkspaceManager: navigation, add/remove, on-demand establishment."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest
import yaml

from muno.workspace.errors import (
    DuplicateNodeError,
    InvalidNodeError,
    MunoError,
    NodeNotFoundError,
    NotInitializedError,
    WorkspaceExistsError,
)
from muno.workspace.git import GitError
from muno.workspace.manager import AddOptions, Providers, WorkspaceManager, find_workspace_root, init_workspace
from muno.workspace.models.enums import FetchMode
from muno.workspace.store.memory import MemoryTreeStore


@pytest.fixture
def team_workspace(root: Path, write_config) -> Path:
    """Root declares ``api`` (lazy) and ``team`` (file) -> ``svc`` (lazy) and ``sub`` (file) -> ``deep``."""
    write_config(
        root / "muno.yaml",
        [{"name": "api", "url": "https://x/api.git", "fetch": "lazy"}, {"name": "team", "file": "team.yaml"}],
    )
    write_config(root / "team.yaml", [{"name": "svc", "url": "https://x/svc.git"}, {"name": "sub", "file": "sub.yaml"}])
    write_config(root / "sub.yaml", [{"name": "deep", "url": "https://x/deep.git", "fetch": "eager"}])
    return root


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def test_initialize_registers_top_level(root: Path, write_config, make_manager) -> None:
    write_config(
        root / "muno.yaml",
        [
            {"name": "payments", "url": "https://x/payments.git"},
            {"name": "acme-monorepo", "url": "https://x/acme-monorepo.git"},
            {"name": "team", "file": "team.yaml"},
        ],
    )
    manager = make_manager()

    tree = manager.tree()
    assert tree.name == "ws"
    assert [c.path for c in tree.children] == ["/payments", "/acme-monorepo", "/team"]
    assert manager.tree_store.get("/payments").is_lazy is True
    assert manager.tree_store.get("/acme-monorepo").is_lazy is False
    assert manager.tree_store.get("/team").is_config_reference


def test_initialize_syncs_with_disk_and_config(root: Path, write_config, make_manager) -> None:
    write_config(
        root / "muno.yaml", [{"name": "api", "url": "https://x/api.git"}, {"name": "old", "url": "https://x/old.git"}]
    )
    make_manager()

    write_config(root / "muno.yaml", [{"name": "api", "url": "https://x/api.git"}])
    (root / "repos" / "api" / ".git").mkdir(parents=True)
    manager = make_manager()

    assert not manager.tree_store.exists("/old")
    api = manager.tree_store.get("/api")
    assert api.is_cloned and not api.is_lazy


def test_tree_state_survives_restart(team_workspace: Path, make_manager) -> None:
    make_manager().resolve_path("/team/svc")
    assert make_manager().tree_store.exists("/team/svc")


def test_in_memory_tree_store(team_workspace: Path, make_manager) -> None:
    manager = make_manager(tree=MemoryTreeStore())
    manager.resolve_path("/team/svc")
    assert not (team_workspace / ".muno-state.json").exists()


def test_operations_require_initialize(root: Path, git, ui, settings) -> None:
    manager = WorkspaceManager(root, Providers(git=git, ui=ui), settings)
    with pytest.raises(NotInitializedError):
        manager.resolve_path("/api")
    with pytest.raises(NotInitializedError):
        manager.add("https://x/api.git")


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


def test_current_path(team_workspace: Path, make_manager) -> None:
    manager = make_manager()
    assert manager.current_path(cwd=team_workspace) == "/"
    assert manager.current_path(cwd=team_workspace / "repos" / "api") == "/api"
    assert manager.tree_store.current == "/api"


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        (".", "/api"),
        ("..", "/"),
        ("", "/"),
        ("~", "/"),
        ("~/team", "/team"),
        ("/team/svc", "/team/svc"),
        ("../team/./svc", "/team/svc"),
        ("lib", "/api/lib"),
    ],
)
def test_resolve_logical(team_workspace: Path, make_manager, target: str, expected: str) -> None:
    manager = make_manager()
    assert manager.resolve_logical(target, cwd=team_workspace / "repos" / "api") == expected


def test_resolve_path_does_not_clone_by_default(team_workspace: Path, git, make_manager) -> None:
    manager = make_manager()
    assert manager.resolve_path("/api") == team_workspace / "repos" / "api"
    assert git.clones == []


def test_resolve_path_ensure_clones_lazy_target(team_workspace: Path, git, make_manager) -> None:
    manager = make_manager()
    path = manager.resolve_path("/api", ensure=True)
    assert (path / ".git").is_dir()
    assert git.cloned_urls == ["https://x/api.git"]
    assert manager.tree_store.get("/api").is_cloned


def test_resolve_path_expands_config_reference(team_workspace: Path, git, make_manager) -> None:
    manager = make_manager()
    assert not manager.tree_store.exists("/team/svc")

    path = manager.resolve_path("/team/svc")

    assert path == team_workspace / "repos" / "team" / "repos" / "svc"
    assert manager.tree_store.exists("/team/svc")
    assert (team_workspace / "repos" / "team" / "muno.yaml").exists()
    assert git.clones == []

    manager.resolve_path("/team/svc", ensure=True)
    assert git.cloned_urls == ["https://x/svc.git"]


def test_resolve_path_expands_nested_references(team_workspace: Path, make_manager) -> None:
    manager = make_manager()
    path = manager.resolve_path("/team/sub/deep")
    assert path == team_workspace / "repos" / "team" / "repos" / "sub" / "repos" / "deep"
    assert manager.tree_store.get("/team/sub").is_config_reference


def test_resolve_path_reaches_nodes_under_lazy_repository(root: Path, git, write_config, make_manager) -> None:
    platform = "https://x/platform.git"
    write_config(root / "muno.yaml", [{"name": "platform", "url": platform, "fetch": "lazy"}])
    inner = {"name": "inner", "url": "https://x/inner.git", "fetch": "lazy"}
    git.contents[platform] = {"muno.yaml": yaml.safe_dump({"nodes": [inner]})}
    manager = make_manager()

    path = manager.resolve_path("/platform/inner")

    assert path == root / "repos" / "platform" / "repos" / "inner"
    assert git.cloned_urls == [platform]
    assert manager.tree_store.get("/platform").is_cloned
    assert not manager.tree_store.get("/platform/inner").is_cloned

    manager.resolve_path("/platform/inner", ensure=True)
    assert git.cloned_urls == [platform, "https://x/inner.git"]


@pytest.mark.parametrize("target", ["/ghost", "/team/ghost", "/team/sub/deep/ghost"])
def test_resolve_path_unknown(team_workspace: Path, make_manager, target: str) -> None:
    manager = make_manager()
    with pytest.raises(NodeNotFoundError):
        manager.resolve_path(target)


def test_round_trip_over_materialized_tree(team_workspace: Path, make_manager) -> None:
    manager = make_manager()
    manager.clone("/", recursive=True, include_lazy=True)

    pending = [manager.tree()]
    seen = 0
    while pending:
        node = pending.pop()
        pending.extend(node.children)
        physical = manager.translator.compute_filesystem_path(node.path)
        assert manager.translator.resolve_tree_path(physical) == node.path
        seen += 1
    assert seen == 6


# ---------------------------------------------------------------------------
# Add
# ---------------------------------------------------------------------------


def test_add_lazy_by_default(root: Path, git, write_config, load_config, make_manager) -> None:
    write_config(root / "muno.yaml", [])
    manager = make_manager()

    node = manager.add("https://x/payments.git", cwd=root)

    assert node.path == "/payments"
    assert node.is_lazy and not node.is_cloned
    assert git.clones == []
    saved = load_config(root / "muno.yaml").find("payments")
    assert saved is not None and saved.fetch is FetchMode.AUTO


def test_add_eager_clones(root: Path, git, write_config, load_config, make_manager) -> None:
    write_config(root / "muno.yaml", [])
    manager = make_manager()

    node = manager.add(
        "https://x/payments.git", AddOptions(fetch=FetchMode.EAGER, name="pay", branch="main"), cwd=root
    )

    assert node.path == "/pay"
    assert node.is_cloned
    assert (root / "repos" / "pay" / ".git").is_dir()
    assert git.clones[0][2].branch == "main"
    assert load_config(root / "muno.yaml").find("pay").branch == "main"


def test_add_duplicate(root: Path, write_config, make_manager) -> None:
    write_config(root / "muno.yaml", [{"name": "api", "url": "https://x/api.git"}])
    manager = make_manager()
    with pytest.raises(DuplicateNodeError):
        manager.add("https://x/api.git", cwd=root)


@pytest.mark.parametrize("name", ["a/b", ".."])
def test_add_invalid_name(root: Path, git, write_config, load_config, make_manager, name: str) -> None:
    write_config(root / "muno.yaml", [])
    manager = make_manager()

    with pytest.raises(InvalidNodeError):
        manager.add("https://x/api.git", AddOptions(fetch=FetchMode.EAGER, name=name), cwd=root)

    assert git.clones == []
    assert load_config(root / "muno.yaml").nodes == []


def test_add_clone_failure_rolls_back(root: Path, git, write_config, load_config, make_manager) -> None:
    write_config(root / "muno.yaml", [])
    git.fail_urls.add("https://x/tool-monorepo.git")
    manager = make_manager()

    with pytest.raises(GitError):
        manager.add("https://x/tool-monorepo.git", cwd=root)

    assert not manager.tree_store.exists("/tool-monorepo")
    assert manager.config.find("tool-monorepo") is None
    assert load_config(root / "muno.yaml").nodes == []


def test_add_under_config_reference_writes_referenced_file(team_workspace: Path, load_config, make_manager) -> None:
    manager = make_manager()
    manager.resolve_path("/team")

    node = manager.add("https://x/extra.git", cwd=team_workspace / "repos" / "team")

    assert node.path == "/team/extra"
    assert load_config(team_workspace / "team.yaml").find("extra") is not None
    assert load_config(team_workspace / "muno.yaml").find("extra") is None


def test_add_under_cloned_repository_creates_nested_config(root: Path, write_config, load_config, make_manager) -> None:
    write_config(root / "muno.yaml", [{"name": "app", "url": "https://x/app.git", "fetch": "eager"}])
    manager = make_manager()
    manager.clone("/")

    node = manager.add("https://x/lib.git", AddOptions(fetch=FetchMode.EAGER), cwd=root / "repos" / "app")

    assert node.path == "/app/lib"
    nested = load_config(root / "repos" / "app" / "muno.yaml")
    assert nested.name == "app"
    assert nested.find("lib") is not None
    assert (root / "repos" / "app" / "repos" / "lib" / ".git").is_dir()
    assert manager.translator.compute_filesystem_path("/app/lib") == root / "repos" / "app" / "repos" / "lib"


def test_add_under_unmaterialized_repository(root: Path, write_config, make_manager) -> None:
    write_config(root / "muno.yaml", [{"name": "app", "url": "https://x/app.git", "fetch": "lazy"}])
    manager = make_manager()
    with pytest.raises(MunoError, match="not materialized"):
        manager.add("https://x/lib.git", cwd=root / "repos" / "app")


# ---------------------------------------------------------------------------
# Remove
# ---------------------------------------------------------------------------


def test_remove_deletes_files_tree_and_declaration(root: Path, ui, write_config, load_config, make_manager) -> None:
    write_config(
        root / "muno.yaml",
        [{"name": "api", "url": "https://x/api.git", "fetch": "eager"}, {"name": "web", "url": "https://x/web.git"}],
    )
    manager = make_manager()
    manager.clone("/")
    assert (root / "repos" / "api").is_dir()

    assert manager.remove("api", cwd=root) is True

    assert ui.prompts == ["Remove api and all its contents?"]
    assert not (root / "repos" / "api").exists()
    assert not manager.tree_store.exists("/api")
    assert [n.name for n in load_config(root / "muno.yaml").nodes] == ["web"]


def test_remove_declined(root: Path, ui, write_config, load_config, make_manager) -> None:
    write_config(root / "muno.yaml", [{"name": "api", "url": "https://x/api.git", "fetch": "eager"}])
    manager = make_manager()
    manager.clone("/")
    ui.answer = False

    assert manager.remove("api", cwd=root) is False

    assert (root / "repos" / "api" / ".git").is_dir()
    assert manager.tree_store.exists("/api")
    assert load_config(root / "muno.yaml").find("api") is not None


def test_remove_reports_undeletable_files(
    root: Path, ui, write_config, load_config, make_manager, monkeypatch: pytest.MonkeyPatch
) -> None:
    write_config(root / "muno.yaml", [{"name": "api", "url": "https://x/api.git", "fetch": "eager"}])
    manager = make_manager()
    manager.clone("/")

    def _busy(path, *args, **kwargs):
        raise OSError("device busy")

    monkeypatch.setattr(shutil, "rmtree", _busy)

    assert manager.remove("api", cwd=root) is True

    assert ("warning", f"Could not delete {root / 'repos' / 'api'}: device busy") in ui.messages
    assert not manager.tree_store.exists("/api")
    assert load_config(root / "muno.yaml").find("api") is None


def test_remove_config_reference(team_workspace: Path, load_config, make_manager) -> None:
    manager = make_manager()
    manager.resolve_path("/team/svc")

    manager.remove("team", cwd=team_workspace)

    assert not (team_workspace / "repos" / "team").exists()
    assert (team_workspace / "team.yaml").exists()
    assert not manager.tree_store.exists("/team/svc")
    assert load_config(team_workspace / "muno.yaml").find("team") is None


def test_remove_unknown(root: Path, write_config, make_manager) -> None:
    write_config(root / "muno.yaml", [])
    with pytest.raises(NodeNotFoundError):
        make_manager().remove("ghost", cwd=root)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def test_status_marks_dirty_repositories(root: Path, git, write_config, make_manager) -> None:
    write_config(
        root / "muno.yaml",
        [
            {"name": "api", "url": "https://x/api.git", "fetch": "eager"},
            {"name": "web", "url": "https://x/web.git", "fetch": "eager"},
        ],
    )
    manager = make_manager()
    manager.clone("/")
    git.dirty.add(root / "repos" / "web")

    checked = {node.path: node.has_local_changes for node in manager.status("/")}

    assert checked == {"/api": False, "/web": True}
    assert manager.tree_store.get("/web").has_local_changes is True


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def test_init_workspace(tmp_path: Path, load_config) -> None:
    target = tmp_path / "platform"
    target.mkdir()

    location = init_workspace(target)

    assert location == target / "muno.yaml"
    assert load_config(location).name == "platform"
    assert (target / "repos").is_dir()
    with pytest.raises(WorkspaceExistsError):
        init_workspace(target, name="again")


def test_find_workspace_root_prefers_outermost(team_workspace: Path, write_config, make_manager) -> None:
    make_manager().resolve_path("/team/svc")
    nested = write_config(team_workspace / "repos" / "inner" / "muno.yaml", [])

    # The linked team config is a symlink and does not count.
    assert find_workspace_root(team_workspace / "repos" / "team" / "repos" / "svc") == team_workspace
    assert find_workspace_root(nested.parent) == team_workspace
    assert find_workspace_root(team_workspace) == team_workspace


def test_find_workspace_root_outside(tmp_path: Path) -> None:
    assert find_workspace_root(tmp_path) is None
