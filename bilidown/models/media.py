"""
Data models for resolved video metadata and stream candidates.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .quality import parse_quality_label

# Sentinel id/codec for the lossless audio variant
FLAC_AUDIO_ID = "flac"

SIGNING_KEY_TTL_SECONDS = 30


@dataclass(frozen=True)
class VideoMetadata:
    """Metadata for a single video, fetched once per resolution."""

    bvid: str
    cid: str
    aid: int
    title: str
    description: str = ""
    duration: int = 0
    cover: str = ""
    owner: str = ""


@dataclass(frozen=True)
class VideoStream:
    """A DASH video track (or a direct-URL file) offered by the manifest."""

    base_url: str
    backup_urls: tuple[str, ...] = ()
    bandwidth: int = 0
    codecs: str = ""
    quality: int = 0
    width: int = 0
    height: int = 0
    quality_label: str = ""

    @property
    def urls(self) -> list[str]:
        """Primary URL followed by the fallbacks, in the order they should be tried."""
        return [u for u in (self.base_url, *self.backup_urls) if u]

    @property
    def is_direct(self) -> bool:
        return self.quality_label == "direct"

    @property
    def quality_name(self) -> str:
        return parse_quality_label(self.quality)


@dataclass(frozen=True)
class AudioStream:
    """A DASH audio track. `id` is the API's stream id, or 'flac' for lossless."""

    base_url: str
    backup_urls: tuple[str, ...] = ()
    bandwidth: int = 0
    codecs: str = ""
    id: str = ""

    @property
    def urls(self) -> list[str]:
        return [u for u in (self.base_url, *self.backup_urls) if u]

    @property
    def is_lossless(self) -> bool:
        return self.id == FLAC_AUDIO_ID


@dataclass
class SigningContext:
    """A WBI mixin key and the time it was fetched."""

    key: str = ""
    fetched_at: float = 0.0

    def is_fresh(self, now: Optional[float] = None) -> bool:
        if not self.key:
            return False
        now = time.time() if now is None else now
        return now - self.fetched_at < SIGNING_KEY_TTL_SECONDS


@dataclass(frozen=True)
class ResolvedStreams:
    """The metadata and candidate lists produced by one resolution pass."""

    metadata: VideoMetadata
    video_streams: tuple[VideoStream, ...] = ()
    audio_streams: tuple[AudioStream, ...] = ()


@dataclass(frozen=True)
class DownloadResult:
    """
    Outcome of a download. `path` is the artifact to hand to the user: the merged
    file when `merged` is true, otherwise the raw video stream.
    """

    path: Path
    merged: bool
    video_stream: VideoStream
    audio_stream: Optional[AudioStream] = None
    leftover_files: tuple[Path, ...] = field(default=())
