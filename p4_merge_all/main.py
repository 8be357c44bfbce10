"""CLI entry point for p4-merge-all."""

import asyncio
import sys
from collections.abc import Coroutine
from typing import Any

import click
import structlog

from p4_merge_all.config.settings import MergeAllSettings
from p4_merge_all.engine.campaign import CampaignDriver, render_report
from p4_merge_all.engine.checkpoint import CheckpointStore
from p4_merge_all.engine.executor import CommandExecutor
from p4_merge_all.engine.types import CampaignResult, CampaignState
from p4_merge_all.exceptions import (
    CheckpointExistsError,
    CommandError,
    FingerprintMismatchError,
    MergeAllError,
    StageError,
)
from p4_merge_all.utils.logging_config import configure_logging
from p4_merge_all.vcs.perforce import PerforceClient

log = structlog.get_logger(__name__)

PROG = "p4-merge-all"


def _indent(text: str, prefix: str = "  ") -> str:
    return "\n".join(f"{prefix}{line}" if line else line for line in text.splitlines())


def _build_driver(ctx: click.Context, safe: bool) -> CampaignDriver:
    settings: MergeAllSettings = ctx.obj["settings"]
    executor = CommandExecutor(timeout=settings.command_timeout)
    p4 = PerforceClient(executor, executable=settings.p4_executable, global_args=settings.p4_global_args)
    return CampaignDriver(p4, ctx.obj["store"], safe=safe)


def _report_error(e: MergeAllError) -> None:
    """Print an engine error the way the operator needs to act on it."""
    click.echo(f"Error: {e.message}", err=True)

    if isinstance(e, CommandError) and e.output:
        click.echo(_indent(e.output), err=True)

    if isinstance(e, StageError):
        click.echo(
            f"\nFix it and run\n\n    {PROG} continue\n\nto continue the process.\n",
            err=True,
        )
        if e.task_index is not None:
            click.echo(f"Current task index (for -i):  {e.task_index}", err=True)
    elif isinstance(e, CommandError) and e.hint:
        click.echo(f"\n{e.hint}", err=True)
    elif isinstance(e, FingerprintMismatchError):
        click.echo(
            "\nIt may indicate that your task list was modified since the state was stored."
            f" You may restart from the very beginning:\n\n    {PROG} go -r\n\n"
            "Or ignore the fingerprint check if you are sure that you did not introduce"
            f" any breaking changes:\n\n    {PROG} continue -m\n",
            err=True,
        )
    elif isinstance(e, CheckpointExistsError):
        click.echo(
            "\nYou might be in a middle of the merge process. To continue the merge process run"
            f"\n\n    {PROG} continue\n\nOr to restart the process run\n\n    {PROG} go -r\n",
            err=True,
        )


def _run_campaign(coro: Coroutine[Any, Any, CampaignResult], event: str) -> None:
    try:
        result = asyncio.run(coro)
    except MergeAllError as e:
        _report_error(e)
        log.debug(f"{event}_error", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    if result.paused:
        click.echo(" # Check resolution and message")
        click.echo(f"\nWhen the change looks right, run\n\n    {PROG} continue\n\nto submit it.")
        return
    click.echo(render_report(result.report))


def _render_status(state: CampaignState) -> str:
    lines = [
        f"Task list:    {state.config_path}",
        f"Fingerprint:  {state.config_fingerprint}",
        f"Task index:   {state.task_index}",
        f"Stage:        {state.stage}",
        f"Change:       {state.change_id or '-'}",
    ]
    if state.report:
        lines.append("")
        lines.append("Report:")
        lines.extend(f"  {line}" for line in state.report)
    return "\n".join(lines)


@click.group()
@click.option("--state-file", default=None, help="Checkpoint file (default: from settings)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Logging level (default: from settings)",
)
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, state_file: str | None, log_level: str | None, json_logs: bool) -> None:
    """p4-merge-all: resumable Perforce integration campaigns."""
    settings = MergeAllSettings()
    configure_logging(log_level or settings.log_level, json_logs=json_logs)
    ctx.obj = {
        "settings": settings,
        "store": CheckpointStore(state_file or settings.state_path),
    }


@cli.command()
@click.option("-c", "--config", "config_path", default=None, help="Task list file (default: from settings)")
@click.option("-r", "--restart", is_flag=True, help="Discard an existing checkpoint, rolling back its change")
@click.option("-u", "--unsafe", is_flag=True, help="Submit without pausing for review")
@click.pass_context
def go(ctx: click.Context, config_path: str | None, restart: bool, unsafe: bool) -> None:
    """Start a new merge campaign."""
    settings: MergeAllSettings = ctx.obj["settings"]
    driver = _build_driver(ctx, safe=not unsafe)
    _run_campaign(driver.start(config_path or settings.default_config, restart=restart), "go")


@cli.command(name="continue")
@click.option("-m", "--ignore-fingerprint", is_flag=True, help="Ignore a changed task list")
@click.option("-r", "--restart", is_flag=True, help="Roll back and restart the current task")
@click.option("-i", "--index", "start_index", type=int, default=None, help="Roll back and jump to task INDEX")
@click.option("-u", "--unsafe", is_flag=True, help="Submit without pausing for review")
@click.pass_context
def continue_(
    ctx: click.Context,
    ignore_fingerprint: bool,
    restart: bool,
    start_index: int | None,
    unsafe: bool,
) -> None:
    """Continue an existing merge campaign."""
    driver = _build_driver(ctx, safe=not unsafe)
    _run_campaign(
        driver.resume(
            ignore_fingerprint=ignore_fingerprint,
            restart_task=restart,
            start_index=start_index,
        ),
        "continue",
    )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show the checkpointed campaign without contacting the server."""
    store: CheckpointStore = ctx.obj["store"]
    try:
        state = asyncio.run(store.load())
    except MergeAllError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(_render_status(state))


if __name__ == "__main__":
    cli()
