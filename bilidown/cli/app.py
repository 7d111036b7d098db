"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from bilidown import __version__
from bilidown.core.orchestrator import DownloadOrchestrator
from bilidown.exceptions import BilidownError
from bilidown.media.muxer import FFmpegMuxer
from bilidown.storage.config_manager import ConfigManager, get_config_dir

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_quality_help,
    print_result,
    print_video_info,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("bilidown")

app = typer.Typer(
    name="bilidown",
    help=(
        "Download Bilibili videos by URL or BV ID. Use 'bilidown <command> --help'"
        " for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)

CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None):
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except BilidownError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
    quality_help: bool = typer.Option(
        False,
        "--quality-help",
        help="List the quality values accepted by -q and exit.",
        is_eager=True,
    ),
):
    """Bilibili Downloader CLI"""
    if version:
        console.print(f"[bold]bilidown[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    if quality_help:
        print_quality_help()
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("bilidown").setLevel(log_level)

    if show_config:
        config = _load_config()
        data = config.model_dump(exclude={"config_path", "source_url"})
        print_config(CONFIG_FILE, data)
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration file."
    ),
):
    """Write a configuration file with the default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    try:
        ConfigManager(CONFIG_FILE).save_new_config()
    except BilidownError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")


@app.command(name="download")
def download_command(
    url: str | None = typer.Argument(
        None, help="A Bilibili video URL or BV ID.", show_default=False
    ),
    url_option: str | None = typer.Option(
        None, "-u", "--url", help="A Bilibili video URL or BV ID."
    ),
    output_dir: Path | None = typer.Option(
        None, "-o", "--output", help="Output directory (default: ./downloads)."
    ),
    quality: int | None = typer.Option(
        None,
        "-q",
        "--quality",
        help="Video quality number, e.g. 80 for 1080P. See --quality-help.",
    ),
    merge: bool | None = typer.Option(
        None,
        "--merge/--no-merge",
        help="Merge video and audio into one file with ffmpeg.",
    ),
    sign: bool | None = typer.Option(
        None,
        "--sign/--no-sign",
        help="Sign the stream manifest request with a WBI signature.",
    ),
    progress: bool = typer.Option(
        True, "--progress/--no-progress", help="Show download progress bars."
    ),
):
    """Download a video from Bilibili."""
    source = url or url_option
    if not source:
        console.print(
            "[red]✗ No URL provided.[/red] "
            "Use: [cyan]bilidown download <URL>[/cyan] or [cyan]--url <URL>[/cyan]"
        )
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "output_dir": str(output_dir) if output_dir else None,
            "quality": quality,
            "merge": merge,
            "sign_requests": sign,
        }.items()
        if value is not None
    }
    cli_options["source_url"] = source
    config = _load_config(cli_options)

    async def _download_async():
        with ProgressManager(console=console, enabled=progress) as progress_manager:
            async with DownloadOrchestrator(
                config,
                on_state_change=progress_manager.on_state_change,
                on_progress=progress_manager.on_progress,
            ) as orchestrator:
                return await orchestrator.download(config.source_url)

    try:
        result = asyncio.run(_download_async())
    except BilidownError as e:
        console.print(format_error_with_suggestions(e, {"Input": source}))
        raise typer.Exit(code=1) from e
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"Type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        raise typer.Exit(code=1) from e

    print_result(result, console)


@app.command()
def info(
    url: str = typer.Argument(..., help="A Bilibili video URL or BV ID."),
    sign: bool | None = typer.Option(
        None,
        "--sign/--no-sign",
        help="Sign the stream manifest request with a WBI signature.",
    ),
):
    """Show video details and the available streams without downloading."""
    cli_options = {"sign_requests": sign} if sign is not None else {}
    config = _load_config(cli_options)

    async def _info_async():
        async with DownloadOrchestrator(config) as orchestrator:
            return await orchestrator.resolve(url)

    try:
        resolved = asyncio.run(_info_async())
    except BilidownError as e:
        console.print(format_error_with_suggestions(e, {"Input": url}))
        raise typer.Exit(code=1) from e

    print_video_info(resolved, console)


@app.command()
def diagnose():
    """Check that ffmpeg and the configuration are usable."""
    console.print("\n[bold cyan]Running diagnostics...[/bold cyan]\n")
    issues_found = False

    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        source = "file" if CONFIG_FILE.is_file() else "defaults"
        console.print(f"[green]✓[/] Configuration is valid ({source}).")
    except BilidownError as e:
        console.print(f"[red]✗ Configuration validation failed: {e}[/red]")
        raise typer.Exit(code=1) from e

    muxer = FFmpegMuxer(config.ffmpeg_path)
    if muxer.is_available() and (version_line := muxer.get_version()):
        console.print(f"[green]✓[/] ffmpeg found: [dim]{version_line}[/dim]")
    else:
        console.print(
            f"[red]✗ ffmpeg not found at '{config.ffmpeg_path}'.[/] "
            "Videos will not be merged; install ffmpeg for best results."
        )
        issues_found = True

    console.print()
    if not issues_found:
        console.print("[bold green]✓ All checks passed![/bold green]\n")
    else:
        console.print(
            "[bold red]✗ Some issues were found. "
            "Please review the messages above.[/bold red]\n"
        )
        raise typer.Exit(code=1)
