"""Operator-facing output and prompts.

:class:`Terminal` is the single channel components use to talk to the
operator. Messages are rendered with rich and mirrored into the current
structured-log operation so the JSON log shows what the operator saw.
"""
from __future__ import annotations

from collections.abc import Callable

import typer
from rich.console import Console
from rich.markup import escape

from .exit_codes import ExitCode, FatalError
from .logging import OperationScope

PromptFn = Callable[[str], str]
ConfirmFn = Callable[[str], bool]


def _typer_prompt(question: str) -> str:
    return str(typer.prompt(question))


def _typer_confirm(question: str) -> bool:
    return bool(typer.confirm(question, default=False))


class Terminal:
    """Leveled output plus prompt/confirm primitives."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        op: OperationScope | None = None,
        verbose: bool = False,
        prompt_fn: PromptFn | None = None,
        confirm_fn: ConfirmFn | None = None,
    ) -> None:
        """Bind the terminal to *console* and (optionally) an operation scope."""
        self.console = console or Console()
        self.op = op
        self.verbose = verbose
        self._prompt_fn = prompt_fn or _typer_prompt
        self._confirm_fn = confirm_fn or _typer_confirm

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------
    def log(self, message: str) -> None:
        """Emit an informational line."""
        self.console.print(escape(message))
        self._record("log", "info", message)

    def debug(self, message: str) -> None:
        """Emit a debug line; dropped entirely unless verbose."""
        if not self.verbose:
            return
        self.console.print(f"[dim]{escape(message)}[/dim]")
        self._record("debug", "info", message)

    def success(self, message: str) -> None:
        """Emit a success line."""
        self.console.print(f"[green]Success:[/green] {escape(message)}")
        self._record("success", "success", message)

    def warning(self, message: str) -> None:
        """Emit a warning line."""
        self.console.print(f"[yellow]Warning:[/yellow] {escape(message)}")
        self._record("warning", "warning", message)

    def error(self, message: str) -> None:
        """Emit an error line without stopping the run."""
        self.console.print(f"[red]Error:[/red] {escape(message)}")
        self._record("error", "error", message)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------
    def prompt(self, question: str) -> str:
        """Ask *question* and return the stripped answer."""
        try:
            answer = self._prompt_fn(question)
        except (typer.Abort, EOFError, KeyboardInterrupt) as exc:
            raise FatalError("Aborted by operator.", code=ExitCode.VALIDATION) from exc
        return answer.strip()

    def prompt_until(
        self,
        question: str,
        is_valid: Callable[[str], bool],
        *,
        invalid_message: str,
    ) -> str:
        """Prompt repeatedly until *is_valid* accepts the answer."""
        while True:
            answer = self.prompt(question)
            if is_valid(answer):
                return answer
            self.warning(invalid_message)

    def confirm(self, question: str) -> bool:
        """Ask a yes/no *question* (default no)."""
        try:
            return self._confirm_fn(question)
        except (typer.Abort, EOFError, KeyboardInterrupt) as exc:
            raise FatalError("Aborted by operator.", code=ExitCode.VALIDATION) from exc

    def _record(self, channel: str, status: str, message: str) -> None:
        if self.op is not None:
            self.op.add_step(f"terminal.{channel}", status=status, detail=message)


__all__ = ["Terminal"]
