"""
Media muxing using FFmpeg.
"""

import asyncio
import logging
import os
import shutil
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)


class FFmpegMuxer:
    """Merges DASH video and audio streams into one container with ffmpeg."""

    def __init__(self, ffmpeg_path: str = "ffmpeg"):
        self.ffmpeg_path = ffmpeg_path

    def is_available(self) -> bool:
        """Checks whether the ffmpeg binary can be found."""
        return shutil.which(self.ffmpeg_path) is not None

    def get_version(self) -> str:
        """Returns the first line of `ffmpeg -version`, or '' if ffmpeg is unusable."""
        try:
            result = subprocess.run(
                [self.ffmpeg_path, "-version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
        except (OSError, subprocess.TimeoutExpired):
            return ""
        if result.returncode != 0:
            return ""
        lines = result.stdout.splitlines()
        return lines[0] if lines else ""

    def build_command(self, video_path: Path, audio_path: Path, output_path: Path) -> list[str]:
        return [
            self.ffmpeg_path,
            "-y",
            "-loglevel", "error",
            "-i", str(video_path),
            "-i", str(audio_path),
            "-c", "copy",
            str(output_path),
        ]  # fmt: skip

    async def mux(self, video_path: Path, audio_path: Path, output_path: Path) -> bool:
        """
        Merges video and audio without re-encoding.

        Returns:
            True if ffmpeg succeeded and produced a non-empty file, False otherwise.
        """
        for path in (video_path, audio_path):
            if not path.exists() or path.stat().st_size == 0:
                log.warning(f"Cannot merge: '{path}' is missing or empty.")
                return False

        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_command(video_path, audio_path, output_path)
        log.info("Merging with ffmpeg...")
        log.debug(" ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await process.communicate()
        except FileNotFoundError:
            log.warning(
                f"[yellow]ffmpeg not found at '{self.ffmpeg_path}'. "
                "Install ffmpeg to merge streams.[/yellow]"
            )
            return False
        except OSError as e:
            log.warning(f"[yellow]Could not run ffmpeg: {e}[/yellow]")
            return False

        if process.returncode != 0:
            log.warning(
                f"[yellow]ffmpeg exited with code {process.returncode}[/yellow]: "
                f"{stderr.decode('utf-8', errors='ignore').strip()}"
            )
            return False

        if not output_path.exists() or os.path.getsize(output_path) == 0:
            log.warning("[yellow]ffmpeg reported success but produced no output.[/yellow]")
            return False
        return True
