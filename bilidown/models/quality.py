"""
Video quality ranks used by the Bilibili playurl API and their display metadata.
"""

from enum import IntEnum


class VideoQuality(IntEnum):
    """Known `qn` quality ranks. Larger is generally better, not strictly by size."""

    Q240P = 6
    Q360P = 16
    Q480P = 32
    Q720P = 64
    Q720P60 = 74
    Q1080P = 80
    Q1080P_PLUS = 112
    Q1080P60 = 116
    Q4K = 120
    HDR = 125
    DOLBY_VISION = 126
    Q8K = 127


# Maps API quality ranks to labels and display colors
QUALITY_MAP = {
    6: {"label": "240P", "color": "bright_black"},
    16: {"label": "360P", "color": "white"},
    32: {"label": "480P", "color": "white"},
    64: {"label": "720P", "color": "yellow"},
    74: {"label": "720P60", "color": "yellow"},
    80: {"label": "1080P", "color": "green"},
    112: {"label": "1080P+", "color": "green"},
    116: {"label": "1080P60", "color": "green"},
    120: {"label": "4K", "color": "cyan"},
    125: {"label": "HDR", "color": "magenta"},
    126: {"label": "Dolby Vision", "color": "magenta"},
    127: {"label": "8K", "color": "bold magenta"},
}

UNKNOWN_QUALITY = {"label": "Unknown", "color": "white"}

DEFAULT_QUALITY = VideoQuality.Q1080P
HIGHEST_QUALITY = VideoQuality.Q8K


def get_quality_info(quality_id: int) -> dict[str, str]:
    """Gets all information for a given quality rank from the central map."""
    return QUALITY_MAP.get(quality_id, UNKNOWN_QUALITY)


def parse_quality_label(quality_id: int) -> str:
    """Returns the human-readable label for a quality rank, or 'Unknown'."""
    return get_quality_info(quality_id)["label"]
