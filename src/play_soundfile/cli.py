"""Command line interface for playing sound files."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import threading
import uuid
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from play_soundfile import __version__
from play_soundfile.app import create_manager, create_node
from play_soundfile.config import AppConfig, get_config_path, load_config, save_config
from play_soundfile.errors import ResolutionError
from play_soundfile.models import PlaybackOptions, PlaybackResult, SessionState
from play_soundfile.player import CANDIDATES, Platform, available_players, detect_platform, resolve
from play_soundfile.sessions import PlaybackSession, PlaybackSessionManager

_MAIN_HELP = """\
Play sound files through the host's audio player (afplay, PowerShell, aplay, mpg123, ...).

[bold]Quick start:[/bold]
  play-soundfile doctor              → Check which player will be used
  play-soundfile play chime.wav      → Play a file and wait for it to finish
  play-soundfile play a.wav b.wav --parallel

[bold]Flow mode:[/bold]
  play-soundfile run < messages.jsonl
  Each input line is a JSON message; {"topic": "stop"} stops all playback.
"""

_CONFIG_HELP = """\
Manage CLI configuration (player, flow node settings).

[bold]Commands:[/bold]
  show  → Display current configuration
  init  → Create default config file

[bold]Config location:[/bold] ~/.config/play-soundfile/config.toml
"""

app = typer.Typer(
    add_completion=False,
    help=_MAIN_HELP,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help=_CONFIG_HELP, rich_markup_mode="rich")
app.add_typer(config_app, name="config")
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)

_state: dict[str, Optional[str]] = {"log_level": None}


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable debug logging"),
) -> None:
    if verbose:
        _state["log_level"] = "DEBUG"


def _setup_logging(config: AppConfig) -> None:
    level = _state["log_level"] or config.logging.level
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _report(result: PlaybackResult, file_path: str) -> None:
    if result.success:
        label = "stopped" if result.state is SessionState.KILLED else "done"
        console.print(f"  [green]✓[/green] {file_path} [dim]({label})[/dim]", soft_wrap=True)
    else:
        console.print(f"  [red]✗[/red] {file_path}: {result.error_message}", soft_wrap=True)


async def _wait(session: PlaybackSession, timeout: float | None) -> PlaybackResult:
    """Wait for *session*, killing it once *timeout* seconds have passed."""
    try:
        result = await asyncio.wait_for(session.wait(), timeout)
    except asyncio.TimeoutError:
        session.kill()
        result = await session.wait()
    _report(result, session.file_path)
    return result


async def _play_files(
    manager: PlaybackSessionManager,
    files: list[Path],
    options: PlaybackOptions,
    parallel: bool,
    timeout: float | None,
) -> bool:
    results: list[PlaybackResult] = []
    try:
        if parallel:
            sessions = [await manager.start(path, options) for path in files]
            results = list(await asyncio.gather(*(_wait(s, timeout) for s in sessions)))
        else:
            for path in files:
                session = await manager.start(path, options)
                results.append(await _wait(session, timeout))
    finally:
        manager.stop_all()
        await manager.wait_idle()
    return all(r.success for r in results)


@app.command()
def play(
    files: list[Path] = typer.Argument(..., help="Audio files to play"),
    volume: Optional[float] = typer.Option(
        None, "--volume", "-v", help="Volume 0.0-1.0 (macOS afplay only)"
    ),
    parallel: bool = typer.Option(
        False, "--parallel/--sequential", help="Play all files at once or one after another"
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Stop each playback after this many seconds"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.toml"
    ),
) -> None:
    """Play one or more audio files and wait for them to finish.

    Ctrl+C stops every running player. Exits with status 1 if any playback failed.
    """
    config = load_config(config_path)
    _setup_logging(config)

    options = config.node.options
    if volume is not None:
        options = options.model_copy(update={"volume": volume})

    manager = create_manager(config)
    try:
        ok = asyncio.run(_play_files(manager, files, options, parallel, timeout))
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")
        raise typer.Exit(130)

    if not ok:
        raise typer.Exit(1)


def _read_stdin(loop: asyncio.AbstractEventLoop, lines: asyncio.Queue[str]) -> None:
    """Feed stdin lines to *lines* from a daemon thread. An empty string marks EOF.

    A daemon thread keeps a blocked ``readline`` from holding up interpreter
    exit after Ctrl+C, which a default executor worker would.
    """
    while True:
        line = sys.stdin.readline()
        try:
            loop.call_soon_threadsafe(lines.put_nowait, line)
        except RuntimeError:
            # Event loop already closed
            return
        if not line:
            return


async def _run_flow(config: AppConfig) -> None:
    def send(msg: dict) -> None:
        typer.echo(json.dumps(msg))

    def error(text: str, msg: dict) -> None:
        err_console.print(f"[bold red]Error:[/bold red] {text}")

    def status(value: dict) -> None:
        logger.debug("Node status: %s", value or "cleared")

    node = create_node(config, send=send, error=error, status=status)
    lines: asyncio.Queue[str] = asyncio.Queue()
    reader = threading.Thread(
        target=_read_stdin, args=(asyncio.get_running_loop(), lines), name="stdin-reader", daemon=True
    )
    reader.start()
    try:
        while True:
            line = await lines.get()
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                msg = json.loads(line)
            except json.JSONDecodeError as e:
                err_console.print(f"[yellow]Skipping invalid message:[/yellow] {e}")
                continue
            if not isinstance(msg, dict):
                err_console.print("[yellow]Skipping message that is not a JSON object[/yellow]")
                continue
            msg.setdefault("_msgid", uuid.uuid4().hex)
            await node.receive(msg)
        await node.manager.wait_idle()
    finally:
        await node.close()


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.toml"
    ),
) -> None:
    """Run the configured flow node on JSON messages read from stdin.

    Messages whose playback succeeds are echoed to stdout; failures go to stderr.
    """
    config = load_config(config_path)
    _setup_logging(config)
    try:
        asyncio.run(_run_flow(config))
    except KeyboardInterrupt:
        pass


@app.command()
def version() -> None:
    """Show version."""
    console.print(f"play-soundfile {__version__}")


@app.command()
def doctor(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.toml"
    ),
) -> None:
    """Check which audio player will be used on this host."""
    config = load_config(config_path)
    platform = detect_platform()

    console.print("[bold]Checking audio player...[/bold]\n")
    console.print(f"  Platform: [cyan]{platform.value}[/cyan]")
    console.print(f"  Configured player: [cyan]{config.player.command}[/cyan]")

    try:
        recipe = resolve(platform, preferred=config.player.command)
    except ResolutionError as e:
        console.print(f"  [red]✗[/red] {e}")
        if platform is Platform.OTHER:
            console.print("    [dim]Fix: apt install alsa-utils (for aplay) or mpg123[/dim]")
        raise typer.Exit(1)

    console.print(f"  [green]✓[/green] Using {recipe.executable}")

    if platform is Platform.OTHER:
        found = set(available_players())
        table = Table(title="Candidates", show_header=False, box=None, padding=(0, 2))
        table.add_column(style="bold")
        table.add_column()
        for name in CANDIDATES:
            table.add_row(name, "[green]found[/green]" if name in found else "[dim]missing[/dim]")
        console.print()
        console.print(table)


# ============================================================================
# Config subcommands
# ============================================================================


@config_app.command("show")
def config_show(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to config.toml"
    ),
) -> None:
    """Show current configuration."""
    config = load_config(config_path)
    used_path = config_path or get_config_path()

    console.print(f"[dim]Config file: {used_path}[/dim]\n")

    player_table = Table(title="Player", show_header=False, box=None, padding=(0, 2))
    player_table.add_column(style="bold cyan")
    player_table.add_column()
    player_table.add_row("Command", f"[green]{config.player.command}[/green]")
    player_table.add_row("Log level", config.logging.level)
    console.print(player_table)
    console.print()

    node = config.node
    node_table = Table(title="Node", show_header=False, box=None, padding=(0, 2))
    node_table.add_column(style="bold cyan")
    node_table.add_column()
    node_table.add_row("Name", node.name or "[dim]not set[/dim]")
    node_table.add_row("Directory", node.directory or "[dim]not set[/dim]")
    node_table.add_row("File", node.file or "[dim]not set[/dim]")
    node_table.add_row("Options", json.dumps(node.options.model_dump(exclude_none=True)))
    node_table.add_row("Allow multiple", "yes" if node.allow_multiple else "no")
    console.print(node_table)


@config_app.command("init")
def config_init(
    config_path: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to create config.toml"
    ),
) -> None:
    """Create a new config file with defaults."""
    target_path = config_path or get_config_path()

    if target_path.exists():
        if not typer.confirm(f"{target_path} already exists. Overwrite?", default=False):
            console.print("[yellow]Aborted.[/yellow]")
            return

    config = AppConfig()
    saved_path = save_config(config, target_path)
    console.print(f"[green]Created {saved_path}[/green]")
    console.print("[dim]Edit the [node] section to set the sound directory and file.[/dim]")
