"""CLI entry point for typeypipe."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from typeypipe.bridge.core import BridgeExit, run_interactive
from typeypipe.config import TypeyPipeConfig
from typeypipe.exceptions import BridgeFatal, ConfigError, ResourceError
from typeypipe.pty.manager import SessionManager
from typeypipe.pty.session import NO_OUTPUT
from typeypipe.pty.shared import create_session
from typeypipe.queue.files import enqueue_command
from typeypipe.queue.processor import QueueProcessor
from typeypipe.workspace import Workspace, prepare_workspace, workspace_paths

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="typeypipe",
    help="Transparent shell messaging system.",
    add_completion=False,
)


def setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_config(
    config_file: str | None,
    shell: str | None,
    queue_dir: str | None,
    input_timeout: int | None,
    quiet: bool,
) -> TypeyPipeConfig:
    try:
        config = TypeyPipeConfig.load(config_file)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if shell:
        config.shell.shell_path = shell
    if queue_dir:
        config.queue_name = queue_dir
    if input_timeout is not None:
        config.input_timeout = input_timeout
    if quiet:
        config.quiet = True
    return config


def _prepare(config: TypeyPipeConfig) -> Workspace:
    try:
        return prepare_workspace(Path.cwd() / config.base_dir, config.queue_name)
    except OSError as e:
        typer.echo(f"Error: cannot prepare {config.base_dir}: {e}", err=True)
        raise typer.Exit(1)


@app.callback(invoke_without_command=True)
def main_command(
    ctx: typer.Context,
    shell: str | None = typer.Option(
        None, "--shell", "-s", help="Shell to use (default: /bin/bash)."
    ),
    queue_dir: str | None = typer.Option(
        None,
        "--queue-dir",
        "-q",
        help="Queue directory name under .tp/ (default: process ID).",
    ),
    input_timeout: int | None = typer.Option(
        None,
        "--input-timeout",
        "-t",
        min=0,
        help="Seconds to wait after user input before resuming queue processing (default: 30).",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-u", help="Suppress startup messages."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Start an interactive shell that also runs commands dropped into its queue."""
    if ctx.invoked_subcommand is not None:
        return

    setup_logging(verbose)
    config = _load_config(config_file, shell, queue_dir, input_timeout, quiet)
    ws = _prepare(config)

    if not config.quiet:
        typer.echo("🚀 Typey Pipe - Shell messaging system")
        typer.echo(f"📁 Message queue: {ws.queue_dir}")
        typer.echo()

    try:
        reason = asyncio.run(_run_shell(config, ws))
    except ResourceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except BridgeFatal as e:
        typer.echo(f"\r\nError: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(0)
    logger.info("Exited: %s", reason.value)


async def _run_shell(config: TypeyPipeConfig, ws: Workspace) -> BridgeExit:
    session = await create_session(config.shell)
    try:
        return await run_interactive(session, ws.queue_dir, ws.log_file, config.input_timeout)
    finally:
        await session.close()


@app.command()
def send(
    command: str = typer.Argument(help="Command text to run in the shell."),
    queue_dir: str = typer.Option(
        ..., "--queue-dir", "-q", help="Queue directory name of the target shell."
    ),
    base_dir: str = typer.Option(".tp", "--base-dir", help="Base directory for queues."),
) -> None:
    """Queue one command for a running typeypipe shell."""
    ws = workspace_paths(base_dir, queue_dir)
    if not ws.queue_dir.is_dir():
        typer.echo(f"Error: no queue at {ws.queue_dir}", err=True)
        raise typer.Exit(1)
    path = enqueue_command(ws.queue_dir, command)
    typer.echo(str(path))


@app.command()
def batch(
    shell: str | None = typer.Option(None, "--shell", "-s", help="Shell to use."),
    queue_dir: str | None = typer.Option(
        None, "--queue-dir", "-q", help="Queue directory name under .tp/."
    ),
    interval: int | None = typer.Option(
        None, "--interval", "-i", min=1, help="Milliseconds between queue passes."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_file: str | None = typer.Option(
        None, "--config", "-c", help="Config file path."
    ),
) -> None:
    """Run a non-interactive shell that executes every queued command on each pass."""
    setup_logging(verbose)
    config = _load_config(config_file, shell, queue_dir, None, True)
    if interval is not None:
        config.poll_interval_ms = interval
    ws = _prepare(config)
    typer.echo(f"📁 Message queue: {ws.queue_dir}", err=True)

    try:
        asyncio.run(_run_batch(config, ws))
    except ResourceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except KeyboardInterrupt:
        raise typer.Exit(0)


async def _run_batch(config: TypeyPipeConfig, ws: Workspace) -> None:
    manager = await SessionManager.create(config.shell)
    processor = QueueProcessor(manager.shared, ws.queue_dir, ws.log_file)
    tasks = [
        asyncio.create_task(processor.run_forever(config.poll_interval_ms)),
        asyncio.create_task(_echo_output(manager)),
    ]
    try:
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await manager.close()


async def _echo_output(manager: SessionManager) -> None:
    """Print shell output until the shell exits."""
    while await manager.shared.is_alive():
        output = await manager.available_output()
        if output == NO_OUTPUT:
            await asyncio.sleep(0.1)
            continue
        typer.echo(output, nl=False)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
