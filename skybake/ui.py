"""Operator-facing output sink.

Steps report progress through a ``Ui`` rather than printing directly so
the enclosing pipeline decides where messages end up.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.markup import escape


@runtime_checkable
class Ui(Protocol):
    """Output sink used by build steps."""

    def say(self, message: str) -> None: ...
    def message(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...


class ConsoleUi:
    """Ui rendered on the terminal with rich."""

    def __init__(
        self,
        console: Console | None = None,
        err_console: Console | None = None,
        prefix: str = "digitalocean",
    ) -> None:
        self._console = console or Console()
        self._err_console = err_console or Console(stderr=True)
        self._prefix = prefix

    def say(self, message: str) -> None:
        self._console.print(f"[bold]==> {self._prefix}:[/bold] {escape(message)}", highlight=False)

    def message(self, message: str) -> None:
        self._console.print(f"    {self._prefix}: {escape(message)}", highlight=False)

    def error(self, message: str) -> None:
        self._err_console.print(f"[bold red]==> {self._prefix}:[/bold red] {escape(message)}", highlight=False)
