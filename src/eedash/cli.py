"""Typer-powered command line for ``eedash``.

``eedash init`` registers this EasyEngine server and its sites with EasyDash.
It is safe to re-run: servers and sites that the dashboard already knows are
skipped, so a second run only retries what failed the first time.
"""
from __future__ import annotations

import textwrap
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .config import AppConfig, ConfigError, load_config
from .exit_codes import ExitCode, FatalError
from .interaction import Terminal
from .logging import OperationScope, StructuredLogger
from .models import Credentials
from .workflow import RegistrationSummary, RegistrationWorkflow, build_credentials

console = Console()

CONFIG_FILE_OPTION = typer.Option(
    None,
    "--config-file",
    dir_okay=False,
    help="Override the path to eedash's YAML config file.",
)

API_OPTION = typer.Option(
    "",
    "--api",
    metavar="API-KEY",
    help="EasyDash API key.",
)
ORG_OPTION = typer.Option(
    "",
    "--org",
    metavar="ORG-NAME",
    help="EasyDash organization the server is added to.",
)
IP_OPTION = typer.Option(
    "",
    "--ip",
    metavar="IP-ADDRESS",
    help="Public IPv4 address of the server (auto-detected when omitted).",
)
HOSTNAME_OPTION = typer.Option(
    "",
    "--hostname",
    metavar="FQDN",
    help="FQDN hostname of the server (confirmed or prompted when omitted).",
)
VERBOSE_OPTION = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Print request and site inspection details.",
)

app = typer.Typer(
    add_completion=False,
    help=textwrap.dedent(
        """
        EasyDash integration for EasyEngine servers.

        Registers this server and the sites it hosts with the EasyDash
        dashboard. Records the dashboard already holds are left untouched.
        """
    ).strip(),
)


@dataclass
class RuntimeContext:
    """Aggregated runtime objects shared by commands."""

    config: AppConfig
    logger: StructuredLogger


def _ensure_runtime(ctx: typer.Context, config_file: Path | None) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime

    try:
        config = load_config(config_file=config_file)
    except ConfigError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(code=int(ExitCode.VALIDATION)) from exc
    runtime = RuntimeContext(config=config, logger=StructuredLogger(config.logs_dir))
    ctx.obj = runtime
    return runtime


def _get_runtime(ctx: typer.Context) -> RuntimeContext:
    runtime = ctx.obj
    if isinstance(runtime, RuntimeContext):
        return runtime
    return _ensure_runtime(ctx, None)


def _command_error(
    op: OperationScope,
    message: str,
    *,
    rc: int = 2,
    errors: Sequence[str] | None = None,
) -> NoReturn:
    """Emit a structured error and terminate the command."""
    console.print(f"[red]Error:[/red] {escape(message)}")
    op.error(message, errors=list(errors or [message]), rc=rc)
    raise typer.Exit(code=rc)


def _build_workflow(
    runtime: RuntimeContext,
    credentials: Credentials,
    terminal: Terminal,
) -> RegistrationWorkflow:
    return RegistrationWorkflow.from_config(runtime.config, credentials, terminal)


def _render_summary(summary: RegistrationSummary) -> None:
    if not (summary.registered or summary.skipped or summary.failed):
        console.print("No EasyEngine sites found.")
        return
    table = Table("Site", "Result")
    for domain in summary.registered:
        table.add_row(domain, "[green]registered[/green]")
    for domain in summary.skipped:
        table.add_row(domain, "[yellow]skipped[/yellow]")
    for domain in summary.failed:
        table.add_row(domain, "[red]failed[/red]")
    console.print(table)


@app.callback(invoke_without_command=True)
def _root(  # noqa: D401 - Typer displays help for us, docstring optional.
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show the eedash version and exit.",
    ),
    config_file: Path | None = CONFIG_FILE_OPTION,
) -> None:
    """Entry point callback invoked for every CLI execution."""
    if version:
        console.print(f"eedash {__version__}")
        raise typer.Exit(code=0)

    _ensure_runtime(ctx, config_file)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(code=0)


@app.command()
def init(
    ctx: typer.Context,
    api: str = API_OPTION,
    org: str = ORG_OPTION,
    ip: str = IP_OPTION,
    hostname: str = HOSTNAME_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Integrate this server and its sites with the EasyDash dashboard."""
    runtime = _get_runtime(ctx)
    with runtime.logger.operation(
        "init",
        args={
            **Credentials(api_key=api.strip(), organization=org.strip()).to_log(),
            "ip": ip.strip() or None,
            "hostname": hostname.strip() or None,
        },
        target={"kind": "dashboard", "scope": runtime.config.dashboard.api_url},
    ) as op:
        try:
            credentials = build_credentials(api, org)
        except FatalError as exc:
            _command_error(op, str(exc), rc=int(exc.code))

        terminal = Terminal(console, op=op, verbose=verbose)
        workflow = _build_workflow(runtime, credentials, terminal)
        try:
            summary = workflow.run(ip.strip(), hostname.strip())
        except FatalError as exc:
            _command_error(op, str(exc), rc=int(exc.code))
        finally:
            workflow.http.close()

        _render_summary(summary)
        context = {"summary": summary.to_dict()}
        changed = len(summary.registered) + int(summary.server_status == "registered")
        warnings = [f"site:{domain}" for domain in summary.failed]
        if summary.server_status == "failed":
            warnings.insert(0, "server")
        if warnings:
            console.print("[yellow]EasyDash integration completed with errors.[/yellow]")
            op.warning(
                "EasyDash integration completed with errors.",
                warnings=warnings,
                changed=changed,
                context=context,
            )
            return
        console.print("[green]EasyDash integration complete.[/green]")
        op.success(
            "EasyDash integration complete.",
            changed=changed,
            context=context,
        )


def main() -> None:  # pragma: no cover - console script shim
    """Console script entry point."""
    app()


__all__ = ["app", "main"]
