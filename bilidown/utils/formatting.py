"""
Helper functions for formatting data into human-readable strings.
"""

from typing import Optional

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_bytes(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.30 MB')."""
    size = float(bytes_size)
    i = 0
    while size >= 1024 and i < len(_SIZE_UNITS) - 1:
        size /= 1024
        i += 1
    return f"{size:.2f} {_SIZE_UNITS[i]}"


def format_duration(seconds: float) -> str:
    """
    Formats a duration in seconds as 'MM:SS', or 'H:MM:SS' when it spans an hour.
    """
    s = int(seconds)
    hours, remainder = divmod(s, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02}:{secs:02}"
    return f"{minutes:02}:{secs:02}"


def format_bandwidth(bandwidth: int) -> str:
    """Formats a stream bandwidth as a bitrate, e.g. '2.31 Mbps'."""
    if bandwidth <= 0:
        return "-"
    kbps = bandwidth / 1000
    if kbps >= 1000:
        return f"{kbps / 1000:.2f} Mbps"
    return f"{kbps:.0f} kbps"


def percent_of(done: int, total: Optional[int]) -> Optional[int]:
    """Integer percentage of `done` over `total`, or None when the total is unknown."""
    if not total or total <= 0:
        return None
    return min(100, int(done * 100 // total))
