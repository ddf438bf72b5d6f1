import contextlib
from collections.abc import Iterator
from pathlib import Path

import click

from muno.workspace.errors import MunoError
from muno.workspace.models.enums import FetchMode
from muno.workspace.models.node import NodeInfo


@click.group()
@click.option("-w", "--workspace", type=click.Path(file_okay=False), default=None, help="Workspace root.")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Debug logging with call sites.")
@click.pass_context
def main(ctx: click.Context, workspace: str | None, verbose: bool) -> None:
    """muno - navigate and lazily materialize multi-repository workspaces."""
    from muno.workspace.log import setup_logging
    from muno.workspace.settings import get_settings

    settings = get_settings()
    setup_logging("DEBUG" if verbose else settings.log_level, verbose=verbose)
    ctx.obj = {"workspace": workspace or settings.workspace}


@contextlib.contextmanager
def _errors() -> Iterator[None]:
    """Surface domain errors as click errors (exit code 1)."""
    try:
        yield
    except MunoError as exc:
        raise click.ClickException(str(exc)) from exc


def _manager(ctx: click.Context, *, assume_yes: bool = False):
    from muno.workspace.git import GitCli
    from muno.workspace.manager import Providers, WorkspaceManager, find_workspace_root
    from muno.workspace.settings import get_settings
    from muno.workspace.ui import ConsoleUI

    settings = get_settings()
    root = ctx.obj.get("workspace") or find_workspace_root()
    if root is None:
        msg = "Not inside a muno workspace (run 'muno init' first)"
        raise click.ClickException(msg)

    providers = Providers(
        git=GitCli(timeout=settings.git_timeout),
        ui=ConsoleUI(assume_yes=assume_yes or settings.assume_yes),
    )
    manager = WorkspaceManager(root, providers, settings)
    with _errors():
        manager.initialize()
    return manager


def _report(manager, result, verb: str) -> None:
    for path in result.succeeded:
        manager.ui.success(f"  {verb}: {path}")
    for path, reason in result.failed.items():
        manager.ui.error(f"  failed: {path} ({reason})")
    manager.ui.info(f"{len(result.succeeded)} succeeded, {len(result.failed)} failed, {len(result.skipped)} skipped")


# ---------------------------------------------------------------------------
# Workspace
# ---------------------------------------------------------------------------


@main.command()
@click.argument("path", type=click.Path(file_okay=False), default=".")
@click.option("--name", default=None, help="Workspace name (default: directory name).")
def init(path: str, name: str | None) -> None:
    """Create a muno.yaml in PATH."""
    from muno.workspace.manager import init_workspace

    with _errors():
        location = init_workspace(Path(path), name)
    click.echo(f"Initialized workspace at {location}")


@main.command()
@click.argument("path", default="/")
@click.pass_context
def tree(ctx: click.Context, path: str) -> None:
    """Show the materialized tree below PATH."""
    manager = _manager(ctx)
    with _errors():
        node = manager.tree(path)
    for line in _render(node):
        click.echo(line)


def _render(node: NodeInfo, prefix: str = "", last: bool = True, top: bool = True) -> list[str]:
    if node.is_config_reference:
        marker = " [config]"
    elif node.is_repository:
        marker = "" if node.is_cloned else (" [lazy]" if node.is_lazy else " [missing]")
        if node.has_local_changes:
            marker += " *"
    else:
        marker = ""

    if top:
        lines = [f"{node.path}{marker}"]
        child_prefix = ""
    else:
        lines = [f"{prefix}{'└── ' if last else '├── '}{node.name}{marker}"]
        child_prefix = prefix + ("    " if last else "│   ")
    for index, child in enumerate(node.children):
        lines.extend(_render(child, child_prefix, index == len(node.children) - 1, top=False))
    return lines


@main.command()
@click.pass_context
def current(ctx: click.Context) -> None:
    """Print the logical path of the working directory."""
    manager = _manager(ctx)
    with _errors():
        click.echo(manager.current_path())


@main.command()
@click.argument("target", default=".")
@click.option("--ensure", is_flag=True, default=False, help="Clone the target (and lazy ancestors) if needed.")
@click.pass_context
def path(ctx: click.Context, target: str, ensure: bool) -> None:
    """Print the physical directory of TARGET."""
    manager = _manager(ctx)
    with _errors():
        click.echo(manager.resolve_path(target, ensure=ensure))


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


@main.command()
@click.argument("url")
@click.option("--name", default=None, help="Node name (default: derived from URL).")
@click.option(
    "--fetch",
    type=click.Choice([mode.value for mode in FetchMode]),
    default=FetchMode.AUTO.value,
    help="When to clone (auto: eager only for aggregation repositories).",
)
@click.option("--branch", default=None, help="Branch to check out.")
@click.option("--recursive", is_flag=True, default=False, help="Clone submodules.")
@click.pass_context
def add(ctx: click.Context, url: str, name: str | None, fetch: str, branch: str | None, recursive: bool) -> None:
    """Add a repository under the current position."""
    from muno.workspace.manager import AddOptions

    manager = _manager(ctx)
    options = AddOptions(fetch=FetchMode(fetch), name=name, branch=branch, recursive=recursive)
    with _errors():
        node = manager.add(url, options)
    state = "lazy, cloned on first use" if node.is_lazy else "cloned"
    manager.ui.success(f"Added {node.path} ({state})")


@main.command()
@click.argument("name")
@click.option("-y", "--yes", is_flag=True, default=False, help="Do not ask for confirmation.")
@click.pass_context
def remove(ctx: click.Context, name: str, yes: bool) -> None:
    """Remove a child of the current position."""
    manager = _manager(ctx, assume_yes=yes)
    with _errors():
        removed = manager.remove(name)
    if removed:
        manager.ui.success(f"Removed {name}")


# ---------------------------------------------------------------------------
# Bulk
# ---------------------------------------------------------------------------


@main.command()
@click.argument("target", default=".")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Descend into nested workspaces.")
@click.option("--include-lazy", is_flag=True, default=False, help="Also clone lazy repositories.")
@click.option("--dry-run", is_flag=True, default=False, help="Only list what would be cloned.")
@click.pass_context
def clone(ctx: click.Context, target: str, recursive: bool, include_lazy: bool, dry_run: bool) -> None:
    """Clone the repositories below TARGET."""
    manager = _manager(ctx)
    with _errors():
        if dry_run:
            for node in manager.preview_clone(target, recursive=recursive, include_lazy=include_lazy):
                click.echo(f"{node.path}  {node.url}")
            return
        result = manager.clone(target, recursive=recursive, include_lazy=include_lazy)
    _report(manager, result, "cloned")


@main.command()
@click.argument("target", default=".")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Descend into nested workspaces.")
@click.option("--include-lazy", is_flag=True, default=False, help="Clone lazy repositories before pulling.")
@click.option("--force", is_flag=True, default=False, help="Discard local changes.")
@click.pass_context
def pull(ctx: click.Context, target: str, recursive: bool, include_lazy: bool, force: bool) -> None:
    """Pull the repositories below TARGET."""
    manager = _manager(ctx)
    with _errors():
        result = manager.pull(target, recursive=recursive, include_lazy=include_lazy, force=force)
    _report(manager, result, "updated")


@main.command()
@click.argument("target", default=".")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Descend into nested workspaces.")
@click.pass_context
def push(ctx: click.Context, target: str, recursive: bool) -> None:
    """Push the cloned repositories below TARGET."""
    manager = _manager(ctx)
    with _errors():
        result = manager.push(target, recursive=recursive)
    _report(manager, result, "pushed")


@main.command()
@click.argument("target", default=".")
@click.option("-m", "--message", required=True, help="Commit message.")
@click.option("-r", "--recursive", is_flag=True, default=False, help="Descend into nested workspaces.")
@click.pass_context
def commit(ctx: click.Context, target: str, message: str, recursive: bool) -> None:
    """Commit local changes in the cloned repositories below TARGET."""
    manager = _manager(ctx)
    with _errors():
        result = manager.commit(message, target, recursive=recursive)
    _report(manager, result, "committed")


@main.command()
@click.argument("target", default=".")
@click.option("-r/-R", "--recursive/--no-recursive", default=True, help="Include nested repositories.")
@click.pass_context
def status(ctx: click.Context, target: str, recursive: bool) -> None:
    """Show which repositories below TARGET have local changes."""
    manager = _manager(ctx)
    with _errors():
        checked = manager.status(target, recursive=recursive)
    for node in checked:
        click.echo(f"{'M' if node.has_local_changes else ' '} {node.path}")


if __name__ == "__main__":
    main()
