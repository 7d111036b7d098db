import asyncio

import aiohttp
import pytest

from bilidown.exceptions import TransportError
from bilidown.media.downloader import Downloader

from .conftest import FakeResponse, FakeSession

PRIMARY = "https://cdn.example/v.m4s"
BACKUP = "https://backup.example/v.m4s"


class BrokenContent:
    """Yields one chunk, then drops the connection."""

    async def iter_chunked(self, size):
        yield b"partial"
        raise aiohttp.ClientPayloadError("connection reset")


def make_downloader(routes, max_attempts=2):
    session = FakeSession(routes)

    async def session_factory():
        return session

    return Downloader(session_factory, max_attempts=max_attempts, base_delay=0), session


def test_download_writes_file_and_reports_progress(tmp_path):
    downloader, _ = make_downloader(
        {PRIMARY: FakeResponse(chunks=[b"abc", b"defg"], content_length=7)}
    )
    destination = tmp_path / "v.m4s"
    reports = []

    size = asyncio.run(
        downloader.download_stream([PRIMARY], destination, lambda d, t: reports.append((d, t)))
    )

    assert size == 7
    assert destination.read_bytes() == b"abcdefg"
    assert reports == [(0, 7), (3, 7), (7, 7)]


def test_unknown_length_reports_none_total(tmp_path):
    downloader, _ = make_downloader({PRIMARY: FakeResponse(chunks=[b"abc"])})
    reports = []

    asyncio.run(
        downloader.download_stream([PRIMARY], tmp_path / "v.m4s", lambda d, t: reports.append(t))
    )

    assert set(reports) == {None}


def test_falls_back_to_backup_url(tmp_path):
    downloader, session = make_downloader(
        {
            PRIMARY: lambda url, params: FakeResponse(status=403),
            BACKUP: FakeResponse(chunks=[b"ok"], content_length=2),
        }
    )
    destination = tmp_path / "v.m4s"

    asyncio.run(downloader.download_stream([PRIMARY, BACKUP], destination))

    assert destination.read_bytes() == b"ok"
    assert [url for url, _ in session.calls] == [PRIMARY, PRIMARY, BACKUP]


def test_interrupted_transfer_is_retried_from_scratch(tmp_path):
    broken = FakeResponse(content_length=100)
    broken.content = BrokenContent()
    downloader, _ = make_downloader(
        {PRIMARY: [broken, FakeResponse(chunks=[b"complete"], content_length=8)]}
    )
    destination = tmp_path / "v.m4s"

    asyncio.run(downloader.download_stream([PRIMARY], destination))

    assert destination.read_bytes() == b"complete"


def test_raising_progress_callback_does_not_abort(tmp_path):
    downloader, _ = make_downloader({PRIMARY: FakeResponse(chunks=[b"abc"], content_length=3)})

    def explode(done, total):
        raise RuntimeError("display closed")

    size = asyncio.run(downloader.download_stream([PRIMARY], tmp_path / "v.m4s", explode))

    assert size == 3


def test_all_urls_failing_raises_and_leaves_no_partial_file(tmp_path):
    def broken(url, params):
        response = FakeResponse(content_length=100)
        response.content = BrokenContent()
        return response

    downloader, session = make_downloader({PRIMARY: broken, BACKUP: broken})
    destination = tmp_path / "v.m4s"

    with pytest.raises(TransportError):
        asyncio.run(downloader.download_stream([PRIMARY, BACKUP], destination))

    assert not destination.exists()
    assert len(session.calls) == 4


def test_empty_url_list_raises(tmp_path):
    downloader, _ = make_downloader({})

    with pytest.raises(TransportError):
        asyncio.run(downloader.download_stream([], tmp_path / "v.m4s"))
