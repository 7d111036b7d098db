"""
Data Models Layer.

This package contains the pydantic configuration model and the dataclasses
that describe resolved videos and their streams.
"""

from .config import DownloadConfig
from .media import (
    AudioStream,
    DownloadResult,
    ResolvedStreams,
    SigningContext,
    VideoMetadata,
    VideoStream,
)
from .quality import VideoQuality, parse_quality_label

__all__ = [
    "AudioStream",
    "DownloadConfig",
    "DownloadResult",
    "ResolvedStreams",
    "SigningContext",
    "VideoMetadata",
    "VideoQuality",
    "VideoStream",
    "parse_quality_label",
]
