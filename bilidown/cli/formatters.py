"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bilidown.models.config import DownloadConfig
from bilidown.models.media import DownloadResult, ResolvedStreams
from bilidown.models.quality import QUALITY_MAP, get_quality_info
from bilidown.utils.formatting import format_bandwidth, format_duration
from bilidown.utils.path import get_video_page_url


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ExtractionError": [
            "• Pass a BV ID (e.g. BV1xx411c7mD) or a full video page URL.",
            "• b23.tv short links must be opened in a browser first to get the BV ID.",
        ],
        "ApiError": [
            "• The video may have been removed or made private.",
            "• Check the BV ID for typos (the part after 'BV' is case-sensitive).",
        ],
        "NoStreamsError": [
            "• The video may require login or be region-restricted.",
            "• Try again later, or with `--sign` to sign the stream request.",
        ],
        "SigningKeyError": [
            "• Bilibili may have changed its signing scheme.",
            "• Retry without `--sign`.",
        ],
        "TransportError": [
            "• A network connection issue occurred.",
            "• The Bilibili API or CDN might be temporarily unavailable.",
            "• Please try again in a few minutes.",
        ],
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `bilidown init --force` to write a fresh default configuration.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    content = Text()
    content.append(f"{error_msg}\n", style="bold red")
    if context:
        for key, value in context.items():
            content.append(f"{key}: ", style="dim")
            content.append(f"{value}\n")
    content.append("\nSuggestions:\n", style="bold")
    content.append("\n".join(suggestions))

    return Panel(
        content,
        title=f"[bold red]✗ {error_type}[/bold red]",
        border_style="red",
        expand=False,
    )


def print_video_info(resolved: ResolvedStreams, console: Console | None = None):
    """Displays video metadata and the available streams."""
    console = console or Console()
    meta = resolved.metadata

    info = Table(show_header=False, box=None, padding=(0, 2))
    info.add_column(style="bold cyan", justify="right")
    info.add_column(style="white")
    info.add_row("Title:", meta.title or "[dim]-[/dim]")
    info.add_row("Uploader:", meta.owner or "[dim]-[/dim]")
    info.add_row("Duration:", format_duration(meta.duration))
    info.add_row("BV ID:", meta.bvid)
    info.add_row("CID:", meta.cid)
    info.add_row("Page:", f"[dim]{get_video_page_url(meta.bvid)}[/dim]")
    console.print(Panel(info, title="[bold]Video[/bold]", border_style="cyan", expand=False))

    videos = Table(title="Video Streams", box=box.SIMPLE)
    videos.add_column("Quality", style="bold")
    videos.add_column("qn", justify="right", style="dim")
    videos.add_column("Resolution")
    videos.add_column("Codec", style="dim")
    videos.add_column("Bitrate", justify="right")
    for stream in resolved.video_streams:
        color = get_quality_info(stream.quality)["color"]
        videos.add_row(
            f"[{color}]{stream.quality_name}[/{color}]",
            str(stream.quality),
            stream.quality_label,
            stream.codecs or "-",
            format_bandwidth(stream.bandwidth),
        )
    console.print(videos)

    if resolved.audio_streams:
        audios = Table(title="Audio Streams", box=box.SIMPLE)
        audios.add_column("ID", style="bold")
        audios.add_column("Codec", style="dim")
        audios.add_column("Bitrate", justify="right")
        for audio in resolved.audio_streams:
            audios.add_row(audio.id or "-", audio.codecs or "-", format_bandwidth(audio.bandwidth))
        console.print(audios)
    else:
        console.print("[dim]No separate audio streams.[/dim]")


def print_result(result: DownloadResult, console: Console | None = None):
    """Displays the final artifact of a download."""
    console = console or Console()
    if result.merged:
        console.print(f"\n[bold green]✓ Download complete:[/bold green] {result.path}")
    else:
        console.print(f"\n[bold yellow]✓ Downloaded (not merged):[/bold yellow] {result.path}")
    for leftover in result.leftover_files:
        console.print(f"  [dim]Also kept: {leftover}[/dim]")


def print_config(config_file: Path, config_data: dict[str, Any]):
    """Displays the current configuration in a formatted table."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    for key, value in sorted(config_data.items()):
        table.add_row(f"{key}:", str(value))
    console.print(
        Panel(
            table,
            title=f"[bold]Configuration[/bold] [dim]({config_file})[/dim]",
            border_style="blue",
            expand=False,
        )
    )


def print_quality_help(config: DownloadConfig | None = None):
    """Displays the quality ranks accepted by -q."""
    console = Console()
    table = Table(title="Quality options", box=box.SIMPLE)
    table.add_column("qn", justify="right", style="bold")
    table.add_column("Label")
    for qn, info in QUALITY_MAP.items():
        marker = " (default)" if config and config.quality == qn else ""
        table.add_row(str(qn), f"[{info['color']}]{info['label']}[/{info['color']}]{marker}")
    console.print(table)
    console.print(
        "[dim]Other positive ranks are accepted and matched exactly against the "
        "stream ids listed by 'bilidown info'.[/dim]"
    )
