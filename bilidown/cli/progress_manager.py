"""
Manages the Rich progress display for the video and audio stream downloads.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from bilidown.core.orchestrator import DownloadState

log = logging.getLogger("bilidown")

STATE_DESCRIPTIONS = {
    DownloadState.FETCHING_METADATA: "Fetching video info",
    DownloadState.FETCHING_MANIFEST: "Fetching stream URLs",
    DownloadState.SELECTING_STREAMS: "Selecting streams",
    DownloadState.DOWNLOADING_VIDEO: "Downloading video",
    DownloadState.DOWNLOADING_AUDIO: "Downloading audio",
    DownloadState.MERGING: "Merging with ffmpeg",
}


class ProgressManager:
    """
    Bridges orchestrator state and progress callbacks to a Rich Progress display.

    One bar per stream; the bar's total is set once the server reports a size.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=False,
        )
        self._tasks: dict[str, TaskID] = {}

    def on_state_change(self, state: DownloadState) -> None:
        if description := STATE_DESCRIPTIONS.get(state):
            log.debug(f"[dim]{description}...[/dim]")

    def on_progress(
        self, label: str, percent: Optional[int], done: int, total: Optional[int]
    ) -> None:
        if not self.enabled:
            return
        task_id = self._tasks.get(label)
        if task_id is None:
            task_id = self.progress.add_task(f"{label.capitalize()} stream", total=total)
            self._tasks[label] = task_id
        self.progress.update(task_id, completed=done, total=total)

    def __enter__(self) -> "ProgressManager":
        if self.enabled:
            self.progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.enabled:
            self.progress.stop()
