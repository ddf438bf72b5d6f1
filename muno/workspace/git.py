"""Version-control collaborator.

The engine never touches repository internals itself; every clone, pull,
push, commit and status query goes through a ``GitProvider``.  ``GitCli``
shells out to the ``git`` binary.
"""

from __future__ import annotations

import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from muno.workspace.errors import MunoError
from muno.workspace.models.enums import GitTransport


class GitError(MunoError, RuntimeError):
    """A git invocation failed."""

    def __init__(self, operation: str, target: object, detail: str) -> None:
        self.operation = operation
        self.target = target
        self.detail = detail
        super().__init__(f"git {operation} failed for {target}: {detail}")


class CloneError(GitError):
    def __init__(self, url: str, detail: str) -> None:
        super().__init__("clone", url, detail)


class PullError(GitError):
    def __init__(self, path: Path, detail: str) -> None:
        super().__init__("pull", path, detail)


@dataclass
class CloneOptions:
    branch: str | None = None
    depth: int | None = None
    recursive: bool = False


@runtime_checkable
class GitProvider(Protocol):
    """Repository operations consumed by the workspace engine."""

    def clone(self, url: str, destination: Path, options: CloneOptions | None = None) -> None:
        """Clone ``url`` into ``destination``.  Raises ``CloneError``."""
        ...

    def pull(self, path: Path, *, force: bool = False) -> None:
        """Raises ``PullError``."""
        ...

    def push(self, path: Path) -> None: ...

    def commit(self, path: Path, message: str) -> None:
        """Stage everything in ``path`` and commit it."""
        ...

    def status(self, path: Path) -> str: ...

    def current_branch(self, path: Path) -> str: ...

    def remote_url(self, path: Path) -> str: ...

    def has_changes(self, path: Path) -> bool: ...


# -- Transport -----------------------------------------------------------------

_SCP_URL = re.compile(r"^(?P<user>[\w.-]+)@(?P<host>[\w.-]+):(?P<path>.+)$")
_HTTPS_URL = re.compile(r"^https://(?P<host>[^/]+)/(?P<path>.+)$")


def apply_transport(url: str, transport: GitTransport | str | None) -> str:
    """Rewrite ``url`` to the preferred transport.

    Only https <-> scp-like ssh (``git@host:org/repo.git``) is rewritten;
    anything else (local paths, ``file://``, ``ssh://``) is returned as-is.
    """
    if not transport:
        return url
    transport = GitTransport(transport)
    if transport is GitTransport.SSH:
        match = _HTTPS_URL.match(url)
        if match:
            path = match["path"] if match["path"].endswith(".git") else match["path"] + ".git"
            return f"git@{match['host']}:{path}"
    elif transport is GitTransport.HTTPS:
        match = _SCP_URL.match(url)
        if match:
            return f"https://{match['host']}/{match['path']}"
    return url


# -- CLI implementation --------------------------------------------------------


class GitCli:
    """GitProvider backed by the ``git`` executable."""

    def __init__(self, executable: str = "git", timeout: int = 600) -> None:
        self._executable = executable
        self._timeout = timeout

    def _run(self, args: list[str], cwd: Path | None = None) -> subprocess.CompletedProcess[str]:
        logger.debug("git {} (cwd={})", " ".join(args), cwd)
        return subprocess.run(
            [self._executable, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=self._timeout,
            check=False,
        )

    def _query(self, operation: str, args: list[str], path: Path) -> str:
        try:
            result = self._run(args, cwd=path)
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise GitError(operation, path, str(exc)) from exc
        if result.returncode != 0:
            raise GitError(operation, path, result.stderr.strip())
        return result.stdout.strip()

    def clone(self, url: str, destination: Path, options: CloneOptions | None = None) -> None:
        options = options or CloneOptions()
        args = ["clone"]
        if options.branch:
            args += ["--branch", options.branch]
        if options.depth:
            args += ["--depth", str(options.depth)]
        if options.recursive:
            args.append("--recurse-submodules")
        args += [url, str(destination)]

        try:
            result = self._run(args)
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise CloneError(url, str(exc)) from exc
        if result.returncode != 0:
            raise CloneError(url, result.stderr.strip())
        logger.info("Cloned {} into {}", url, destination)

    def pull(self, path: Path, *, force: bool = False) -> None:
        try:
            if force:
                self._run(["fetch", "--all"], cwd=path)
                result = self._run(["reset", "--hard", "@{upstream}"], cwd=path)
            else:
                result = self._run(["pull", "--ff-only"], cwd=path)
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise PullError(path, str(exc)) from exc
        if result.returncode != 0:
            raise PullError(path, result.stderr.strip())
        logger.info("Pulled {}", path)

    def push(self, path: Path) -> None:
        self._query("push", ["push"], path)

    def commit(self, path: Path, message: str) -> None:
        self._query("add", ["add", "--all"], path)
        self._query("commit", ["commit", "-m", message], path)
        logger.info("Committed {}", path)

    def status(self, path: Path) -> str:
        return self._query("status", ["status", "--short", "--branch"], path)

    def current_branch(self, path: Path) -> str:
        return self._query("rev-parse", ["rev-parse", "--abbrev-ref", "HEAD"], path)

    def remote_url(self, path: Path) -> str:
        return self._query("remote", ["remote", "get-url", "origin"], path)

    def has_changes(self, path: Path) -> bool:
        return bool(self._query("status", ["status", "--porcelain"], path))
