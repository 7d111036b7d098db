"""
Parses raw playurl manifests into typed video and audio stream candidates.

The manifest is loosely typed: DASH and direct-URL (durl) layouts, optional
FLAC and Dolby blocks, and fields that may be missing or null. Parsing never
raises; malformed sections degrade to empty lists with a logged warning.
"""

import logging
from typing import Any

from bilidown.models.media import FLAC_AUDIO_ID, AudioStream, VideoStream
from bilidown.models.quality import parse_quality_label
from bilidown.utils.fields import (
    get_dict,
    get_first,
    get_int,
    get_str,
    get_str_list,
)

log = logging.getLogger(__name__)

DIRECT_LABEL = "direct"

ParsedManifest = tuple[list[VideoStream], list[AudioStream]]


def _base_url(entry: dict[str, Any]) -> str:
    value = get_first(entry, "baseUrl", "base_url", "url")
    return value if isinstance(value, str) else ""


def _backup_urls(entry: dict[str, Any]) -> tuple[str, ...]:
    return get_str_list(entry, "backupUrl", "backup_url")


def _parse_video_entry(entry: dict[str, Any]) -> VideoStream:
    quality = get_int(entry, "id")
    width = get_int(entry, "width")
    height = get_int(entry, "height")
    label = f"{width}x{height}"
    if width == 0 and height == 0:
        label = parse_quality_label(quality)
    return VideoStream(
        base_url=_base_url(entry),
        backup_urls=_backup_urls(entry),
        bandwidth=get_int(entry, "bandwidth"),
        codecs=get_str(entry, "codecs"),
        quality=quality,
        width=width,
        height=height,
        quality_label=label,
    )


def _parse_audio_entry(entry: dict[str, Any]) -> AudioStream:
    return AudioStream(
        base_url=_base_url(entry),
        backup_urls=_backup_urls(entry),
        bandwidth=get_int(entry, "bandwidth"),
        codecs=get_str(entry, "codecs"),
        id=get_str(entry, "id"),
    )


def _parse_flac(flac: dict[str, Any]) -> AudioStream | None:
    """The lossless block nests its stream under 'audio' in current responses."""
    entry = get_dict(flac, "audio") or flac
    base_url = _base_url(entry)
    if not base_url:
        return None
    return AudioStream(
        base_url=base_url,
        backup_urls=_backup_urls(entry),
        bandwidth=get_int(entry, "bandwidth"),
        codecs=FLAC_AUDIO_ID,
        id=FLAC_AUDIO_ID,
    )


def _entries(section: dict[str, Any], key: str) -> list[dict[str, Any]]:
    raw = section.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list):
        log.warning(f"Manifest section '{key}' is not a list; ignoring it.")
        return []
    entries = [item for item in raw if isinstance(item, dict)]
    if len(entries) < len(raw):
        log.warning(
            f"Skipped {len(raw) - len(entries)} malformed entries in '{key}'."
        )
    return entries


def _parse_dash(dash: dict[str, Any]) -> ParsedManifest:
    videos = [_parse_video_entry(e) for e in _entries(dash, "video")]
    audios = [_parse_audio_entry(e) for e in _entries(dash, "audio")]

    if flac := get_dict(dash, "flac"):
        if stream := _parse_flac(flac):
            audios.append(stream)

    if dolby := get_dict(dash, "dolby"):
        audios.extend(_parse_audio_entry(e) for e in _entries(dolby, "audio"))

    return videos, audios


def _parse_durl(durl: list[Any]) -> list[VideoStream]:
    streams = []
    for item in durl:
        if not isinstance(item, dict):
            continue
        streams.append(
            VideoStream(
                base_url=get_str(item, "url"),
                backup_urls=_backup_urls(item),
                quality_label=DIRECT_LABEL,
            )
        )
    return streams


def parse_manifest(raw: Any) -> ParsedManifest:
    """
    Converts a raw manifest into (video_streams, audio_streams).

    Accepts either the playurl `data` object or the full `{code, data}` envelope.
    Never raises.
    """
    if not isinstance(raw, dict):
        log.warning("Manifest is not a JSON object; no streams available.")
        return [], []

    data = raw
    if "code" in raw and ("data" in raw or "message" in raw):
        code = get_int(raw, "code")
        if code != 0:
            message = get_str(raw, "message")
            log.warning(
                f"Playurl API returned error code {code}"
                + (f": {message}" if message else "")
            )
            return [], []
        data = raw.get("data")
        if not isinstance(data, dict):
            log.warning("No data section found in play info response.")
            return [], []

    videos: list[VideoStream] = []
    audios: list[AudioStream] = []

    dash = data.get("dash")
    if isinstance(dash, dict):
        videos, audios = _parse_dash(dash)
    elif dash is not None:
        log.warning("Manifest 'dash' section is malformed; ignoring it.")

    durl = data.get("durl")
    if isinstance(durl, list):
        videos.extend(_parse_durl(durl))
    elif durl is not None:
        log.warning("Manifest 'durl' section is malformed; ignoring it.")

    if not videos and not audios:
        log.warning("Manifest contains no DASH or direct-URL streams.")

    videos = [v for v in videos if v.urls]
    audios = [a for a in audios if a.urls]
    return videos, audios
