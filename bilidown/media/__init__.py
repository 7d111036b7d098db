"""
Media Processing Layer.

This package is responsible for all media file operations: downloading
stream files and merging them with ffmpeg.
"""

from .downloader import Downloader
from .muxer import FFmpegMuxer

__all__ = ["Downloader", "FFmpegMuxer"]
