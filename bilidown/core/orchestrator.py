"""
The orchestrator for resolving a video and running its download-then-merge pipeline.
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable, Optional

from bilidown.api.client import BiliAPIClient
from bilidown.exceptions import MergeUnavailable, NoStreamsError
from bilidown.media import Downloader, FFmpegMuxer
from bilidown.models.config import DownloadConfig
from bilidown.models.media import (
    AudioStream,
    DownloadResult,
    ResolvedStreams,
    VideoMetadata,
    VideoStream,
)
from bilidown.models.quality import HIGHEST_QUALITY
from bilidown.utils.formatting import format_bytes, percent_of
from bilidown.utils.path import create_dir, extract_bvid, sanitize_filename

from .manifest import parse_manifest
from .selector import select_audio, select_video

log = logging.getLogger(__name__)

DASH_EXTENSION = "m4s"
DIRECT_EXTENSION = "flv"

NO_STREAMS_MESSAGE = (
    "No video streams found. Video may require login or be region-restricted."
)


class DownloadState(Enum):
    """Stages of a single download, in the order they are entered."""

    IDLE = "idle"
    FETCHING_METADATA = "fetching_metadata"
    FETCHING_MANIFEST = "fetching_manifest"
    SELECTING_STREAMS = "selecting_streams"
    DOWNLOADING_VIDEO = "downloading_video"
    DOWNLOADING_AUDIO = "downloading_audio"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


StateListener = Callable[[DownloadState], None]
# Called with (stream label, percent or None, bytes so far, total bytes or None)
ProgressListener = Callable[[str, Optional[int], int, Optional[int]], None]


class DownloadOrchestrator:
    """
    Runs one video through metadata, manifest, selection, download and merge.

    Stages run strictly one after another. The orchestrator owns the temporary
    stream files it creates and removes them on failure or after a merge.
    Use one instance per concurrent download.
    """

    def __init__(
        self,
        config: DownloadConfig,
        api_client: Optional[BiliAPIClient] = None,
        downloader: Optional[Downloader] = None,
        muxer: Optional[FFmpegMuxer] = None,
        on_state_change: Optional[StateListener] = None,
        on_progress: Optional[ProgressListener] = None,
    ):
        self.config = config
        self.api_client = api_client or BiliAPIClient(
            sign_requests=config.sign_requests, max_attempts=config.max_attempts
        )
        self.downloader = downloader or Downloader(
            self.api_client.get_session, max_attempts=config.max_attempts
        )
        self.muxer = muxer or FFmpegMuxer(config.ffmpeg_path)
        self.on_state_change = on_state_change
        self.on_progress = on_progress

        self._state = DownloadState.IDLE
        self.resolved: Optional[ResolvedStreams] = None

    @property
    def state(self) -> DownloadState:
        return self._state

    async def close(self) -> None:
        await self.api_client.close()

    async def __aenter__(self) -> "DownloadOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _transition(self, state: DownloadState) -> None:
        log.debug(f"State: {self._state.value} -> {state.value}")
        self._state = state
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(state)
        except Exception as e:
            log.debug(f"State listener failed: {e}")

    def _progress_reporter(self, label: str) -> Callable[[int, Optional[int]], None]:
        def report(done: int, total: Optional[int]) -> None:
            if self.on_progress is not None:
                self.on_progress(label, percent_of(done, total), done, total)

        return report

    async def resolve(
        self, text: str, quality: int = int(HIGHEST_QUALITY)
    ) -> ResolvedStreams:
        """
        Resolves user input into metadata and stream candidates.

        Raises:
            ExtractionError: If no BV identifier is found in `text`.
            ApiError: If the metadata or manifest request is rejected.
            NoStreamsError: If the manifest yields no video stream.
        """
        bvid = extract_bvid(text)
        log.info(f"BV ID: [cyan]{bvid}[/cyan]")

        self._transition(DownloadState.FETCHING_METADATA)
        metadata = await self.api_client.fetch_metadata(bvid)
        log.info(f"Found video: [bold]{metadata.title}[/bold]")

        self._transition(DownloadState.FETCHING_MANIFEST)
        raw_manifest = await self.api_client.fetch_manifest(bvid, metadata.cid, quality)
        video_streams, audio_streams = parse_manifest(raw_manifest)
        log.info(
            f"Found {len(video_streams)} video streams and "
            f"{len(audio_streams)} audio streams"
        )
        if not video_streams:
            raise NoStreamsError(NO_STREAMS_MESSAGE)

        self.resolved = ResolvedStreams(
            metadata=metadata,
            video_streams=tuple(video_streams),
            audio_streams=tuple(audio_streams),
        )
        return self.resolved

    @staticmethod
    def base_name(metadata: VideoMetadata) -> str:
        """A file-system safe base name from the title, or the BV id if that is empty."""
        return sanitize_filename(metadata.title).strip() or metadata.bvid

    async def download(
        self,
        text: str,
        output_dir: Optional[Path] = None,
        quality: Optional[int] = None,
    ) -> DownloadResult:
        """
        Resolves, downloads and merges a video.

        A failed merge is not an error: the unmerged video file is returned with
        `merged=False`. Every other failure moves to FAILED, removes the temporary
        files created so far and propagates.
        """
        requested = self.config.quality if quality is None else quality
        target_dir = Path(output_dir or self.config.output_dir)
        created: list[Path] = []

        try:
            resolved = await self.resolve(text)

            self._transition(DownloadState.SELECTING_STREAMS)
            video = select_video(resolved.video_streams, requested)
            audio = select_audio(resolved.audio_streams)
            log.info(f"Selected video quality: [green]{video.quality_label}[/green]")
            if audio is None:
                log.info("No audio stream available; the output will be video-only.")

            create_dir(target_dir)
            base = self.base_name(resolved.metadata)
            video_ext = DIRECT_EXTENSION if video.is_direct else DASH_EXTENSION

            self._transition(DownloadState.DOWNLOADING_VIDEO)
            video_path = target_dir / f"{base}_video.{video_ext}"
            created.append(video_path)
            await self._download(video, video_path, "video")

            audio_path: Optional[Path] = None
            if audio is not None:
                self._transition(DownloadState.DOWNLOADING_AUDIO)
                audio_path = target_dir / f"{base}_audio.{DASH_EXTENSION}"
                created.append(audio_path)
                await self._download(audio, audio_path, "audio")
        except (Exception, asyncio.CancelledError):
            self._transition(DownloadState.FAILED)
            self._remove_files(created)
            raise

        if audio_path is None or not self.config.merge:
            self._transition(DownloadState.DONE)
            return DownloadResult(
                path=video_path,
                merged=False,
                video_stream=video,
                audio_stream=audio,
                leftover_files=(audio_path,) if audio_path else (),
            )

        self._transition(DownloadState.MERGING)
        output_path = target_dir / f"{base}.{self.config.merge_ext}"
        try:
            await self._merge(video_path, audio_path, output_path)
        except MergeUnavailable as e:
            return self._merge_failed(e, video, audio, video_path, audio_path)

        self._remove_files([video_path, audio_path])
        self._transition(DownloadState.DONE)
        log.info(f"[green]Download complete:[/green] {output_path}")
        return DownloadResult(
            path=output_path, merged=True, video_stream=video, audio_stream=audio
        )

    async def _download(
        self, stream: VideoStream | AudioStream, destination: Path, label: str
    ) -> None:
        log.info(f"Downloading {label} stream...")
        size = await self.downloader.download_stream(
            stream.urls, destination, self._progress_reporter(label)
        )
        log.debug(f"Wrote {format_bytes(size)} to '{destination}'")

    async def _merge(self, video_path: Path, audio_path: Path, output_path: Path) -> None:
        try:
            merged = await self.muxer.mux(video_path, audio_path, output_path)
        except OSError as e:
            raise MergeUnavailable(f"Could not run the muxer: {e}") from e
        if not merged:
            self._remove_files([output_path])
            raise MergeUnavailable("ffmpeg could not merge the streams")

    def _merge_failed(
        self,
        error: MergeUnavailable,
        video: VideoStream,
        audio: Optional[AudioStream],
        video_path: Path,
        audio_path: Path,
    ) -> DownloadResult:
        log.warning(f"[yellow]{error}; returning the unmerged video file.[/yellow]")
        leftovers: tuple[Path, ...] = ()
        if self.config.keep_audio_on_merge_failure:
            leftovers = (audio_path,)
        else:
            self._remove_files([audio_path])
        self._transition(DownloadState.DONE)
        return DownloadResult(
            path=video_path,
            merged=False,
            video_stream=video,
            audio_stream=audio,
            leftover_files=leftovers,
        )

    @staticmethod
    def _remove_files(paths: Iterable[Optional[Path]]) -> None:
        for path in paths:
            if path is None:
                continue
            try:
                if path.exists():
                    os.remove(path)
            except OSError as e:
                log.debug(f"Could not remove '{path}': {e}")
