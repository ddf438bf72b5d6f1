"""User-interaction collaborator.

The engine only needs a sink for messages and a yes/no confirmation.
``ConsoleUI`` renders through click.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import click


@runtime_checkable
class UserInterface(Protocol):
    def confirm(self, prompt: str) -> bool: ...

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class ConsoleUI:
    """Terminal implementation of the UserInterface protocol."""

    def __init__(self, *, assume_yes: bool = False) -> None:
        self._assume_yes = assume_yes

    def confirm(self, prompt: str) -> bool:
        if self._assume_yes:
            return True
        return click.confirm(prompt, default=False)

    def info(self, message: str) -> None:
        click.echo(message)

    def success(self, message: str) -> None:
        click.secho(message, fg="green")

    def warning(self, message: str) -> None:
        click.secho(message, fg="yellow", err=True)

    def error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)
