"""Shared fakes standing in for aiohttp sessions and the pipeline collaborators."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

import aiohttp
import pytest

from bilidown.exceptions import TransportError
from bilidown.models.config import DownloadConfig


class FakeContent:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def iter_chunked(self, size):
        for chunk in self._chunks:
            yield chunk


class FakeResponse:
    """Async context manager mimicking aiohttp.ClientResponse."""

    def __init__(
        self,
        payload: Any = None,
        status: int = 200,
        chunks=(),
        content_length: Optional[int] = None,
        error: Optional[BaseException] = None,
    ):
        self.payload = payload
        self.status = status
        self.content = FakeContent(chunks)
        self.content_length = content_length
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientConnectionError(f"HTTP {self.status}")

    async def json(self, content_type=None):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """
    Routes GET requests by URL. A route is a FakeResponse, a list of them
    (consumed in order) or a callable taking (url, params).
    """

    def __init__(self, routes: dict[str, Any]):
        self.routes = routes
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def get(self, url, params=None, **kwargs):
        self.calls.append((url, params))
        route = self.routes[url]
        if callable(route):
            return route(url, params)
        if isinstance(route, list):
            return route.pop(0)
        return route

    async def close(self):
        self.closed = True


class NoopLimiter:
    def __init__(self):
        self.throttled = 0

    async def acquire(self):
        return None

    async def on_throttled(self):
        self.throttled += 1


class FakeAPIClient:
    def __init__(self, metadata=None, manifest=None, metadata_error=None):
        self.metadata = metadata
        self.manifest = manifest
        self.metadata_error = metadata_error
        self.manifest_calls: list[tuple] = []
        self.closed = False

    async def fetch_metadata(self, bvid):
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.metadata

    async def fetch_manifest(self, bvid, cid, quality=127, sign=None):
        self.manifest_calls.append((bvid, cid, quality, sign))
        return self.manifest

    async def get_session(self):
        raise AssertionError("network access in tests")

    async def close(self):
        self.closed = True


class FakeDownloader:
    def __init__(self, fail_on: Optional[str] = None, payload: bytes = b"x" * 100):
        self.fail_on = fail_on
        self.payload = payload
        self.calls: list[tuple[list[str], Path]] = []

    async def download_stream(self, urls, destination: Path, progress=None):
        self.calls.append((list(urls), destination))
        if self.fail_on and self.fail_on in destination.name:
            destination.write_bytes(b"partial")
            raise TransportError("connection reset")
        destination.write_bytes(self.payload)
        if progress is not None:
            progress(len(self.payload) // 2, len(self.payload))
            progress(len(self.payload), len(self.payload))
        return len(self.payload)


class FakeMuxer:
    def __init__(self, result: bool = True):
        self.result = result
        self.calls: list[tuple[Path, Path, Path]] = []

    async def mux(self, video_path, audio_path, output_path):
        self.calls.append((video_path, audio_path, output_path))
        if self.result:
            output_path.write_bytes(video_path.read_bytes() + audio_path.read_bytes())
        return self.result


def dash_manifest(video_ids=(80, 64), with_audio=True) -> dict:
    return {
        "dash": {
            "video": [
                {
                    "id": qn,
                    "baseUrl": f"https://cdn.example/v{qn}.m4s",
                    "backupUrl": [f"https://backup.example/v{qn}.m4s"],
                    "bandwidth": qn * 10000,
                    "codecs": "avc1.640032",
                    "width": 1920,
                    "height": 1080,
                }
                for qn in video_ids
            ],
            "audio": (
                [
                    {
                        "id": 30280,
                        "baseUrl": "https://cdn.example/a30280.m4s",
                        "backupUrl": [],
                        "bandwidth": 320000,
                        "codecs": "mp4a.40.2",
                    }
                ]
                if with_audio
                else []
            ),
        }
    }


@pytest.fixture
def make_config(tmp_path) -> Callable[..., DownloadConfig]:
    def _make(**overrides) -> DownloadConfig:
        values = {"output_dir": str(tmp_path / "out")}
        values.update(overrides)
        return DownloadConfig(**values)

    return _make
