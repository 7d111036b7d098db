"""
Picks the video and audio streams to download from the parsed candidates.
"""

import logging
from typing import Optional, Sequence

from bilidown.exceptions import NoStreamsError
from bilidown.models.media import AudioStream, VideoStream

log = logging.getLogger(__name__)


def select_video(candidates: Sequence[VideoStream], requested: int) -> VideoStream:
    """
    Returns the first candidate with exactly the requested quality rank, or else
    the candidate with the highest rank (not the nearest one).

    Raises:
        NoStreamsError: If there are no candidates.
    """
    if not candidates:
        raise NoStreamsError("No video streams available")

    for stream in candidates:
        if stream.quality == requested:
            return stream

    best = candidates[0]
    for stream in candidates[1:]:
        if stream.quality > best.quality:
            best = stream
    log.info(
        f"[yellow]Quality {requested} not available, "
        f"using best available ({best.quality_name}).[/yellow]"
    )
    return best


def select_audio(candidates: Sequence[AudioStream]) -> Optional[AudioStream]:
    """Returns the first audio candidate; manifest order already ranks them."""
    return candidates[0] if candidates else None
