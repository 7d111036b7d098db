"""
Utilities for handling file names, video page URLs and BV identifier parsing.
"""

import re
from pathlib import Path
from urllib.parse import parse_qs, urlparse

from pathvalidate import sanitize_filename as _sanitize

from bilidown.exceptions import ExtractionError

BILIBILI_BASE_URL = "https://www.bilibili.com"
SHORT_LINK_HOSTS = ("b23.tv", "www.b23.tv")

_BVID_REGEX = re.compile(r"^(?i:bv)([0-9a-zA-Z]{10})$")
_CONTROL_CHARS_REGEX = re.compile(r"[\x00-\x1f\x7f]")
MAX_FILENAME_LENGTH = 200


def _match_bvid(text: str) -> str | None:
    match = _BVID_REGEX.match(text)
    if match:
        return "BV" + match.group(1)
    return None


def extract_bvid(text: str) -> str:
    """
    Extracts a canonical BV identifier from a bare id, a video page URL or a
    b23.tv short link whose path embeds the id.

    The 'BV' prefix is always uppercased; the 10-character body keeps its case.
    Short links that hide the id behind a redirect are not resolved.

    Raises:
        ExtractionError: If no identifier can be found.
    """
    trimmed = text.strip()

    if bvid := _match_bvid(trimmed):
        return bvid

    parsed = urlparse(trimmed)
    for part in parsed.path.split("/"):
        if part and (bvid := _match_bvid(part)):
            return bvid

    if parsed.hostname in SHORT_LINK_HOSTS:
        raise ExtractionError(
            f"Short link does not embed a BV ID and cannot be resolved offline: {text}"
        )
    raise ExtractionError(f"Could not extract BV ID from URL: {text}")


def is_valid_bilibili_url(text: str) -> bool:
    """Checks whether a BV identifier can be extracted from the input."""
    try:
        extract_bvid(text)
    except ExtractionError:
        return False
    return True


def get_video_page_url(bvid: str, page: int = 1) -> str:
    """Builds the public page URL for a video, with a part number when > 1."""
    url = f"{BILIBILI_BASE_URL}/video/{bvid}"
    if page > 1:
        url += f"?p={page}"
    return url


def extract_page_number(url: str) -> str:
    """Returns the 'p' (part number) query parameter of a URL, or ''."""
    values = parse_qs(urlparse(url.strip()).query).get("p")
    return values[0] if values else ""


def sanitize_filename(filename: str) -> str:
    """Replaces characters that are invalid in file names and strips control chars."""
    cleaned = _CONTROL_CHARS_REGEX.sub("", filename)
    return _sanitize(
        cleaned,
        replacement_text="_",
        platform="universal",
        max_len=MAX_FILENAME_LENGTH,
    )


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
