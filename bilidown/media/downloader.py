"""
Handles the low-level downloading of media streams over HTTP, walking the
primary and fallback URLs of a stream in order.
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, Optional, Sequence

import aiofiles
import aiohttp

from bilidown.exceptions import TransportError

log = logging.getLogger(__name__)

# Called with (bytes_so_far, total_bytes); total is None when the server omits it
ProgressCallback = Callable[[int, Optional[int]], None]


class Downloader:
    """A stream downloader with per-URL retry logic and URL fallback."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        session_factory: Callable[[], Awaitable[aiohttp.ClientSession]],
        max_attempts: int = 3,
        base_delay: float = 1.5,
    ):
        """
        Args:
            session_factory: Coroutine function returning the session to download
                with, normally `BiliAPIClient.get_session` so the CDN sees the
                same Referer and User-Agent as the API.
            max_attempts: Attempts per URL before moving on to the next one.
            base_delay: Base delay in seconds for the exponential backoff.
        """
        self._session_factory = session_factory
        self.max_attempts = max_attempts
        self.base_delay = base_delay

    @staticmethod
    def _report(progress: Optional[ProgressCallback], done: int, total: Optional[int]):
        if progress is None:
            return
        try:
            progress(done, total)
        except Exception as e:
            log.debug(f"Progress callback failed: {e}")

    async def _fetch_to_file(
        self,
        url: str,
        destination: Path,
        progress: Optional[ProgressCallback],
    ) -> int:
        session = await self._session_factory()
        async with session.get(url, allow_redirects=True) as response:
            response.raise_for_status()
            total = response.content_length
            bytes_downloaded = 0
            self._report(progress, 0, total)

            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    self._report(progress, bytes_downloaded, total)
        return bytes_downloaded

    async def download_stream(
        self,
        urls: Sequence[str],
        destination: Path,
        progress: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Downloads the first URL that succeeds into `destination`.

        Returns:
            The number of bytes written.

        Raises:
            TransportError: If every URL fails.
        """
        if not urls:
            raise TransportError("No URL to download from.")

        last_exception: Optional[BaseException] = None
        for index, url in enumerate(urls):
            if index > 0:
                log.info(f"[yellow]Trying fallback URL {index}/{len(urls) - 1}...[/yellow]")
            for attempt in range(1, self.max_attempts + 1):
                try:
                    return await self._fetch_to_file(url, destination, progress)
                except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                    last_exception = e
                    log.debug(
                        f"Download attempt {attempt}/{self.max_attempts} for "
                        f"'{destination.name}' failed: {e}"
                    )
                    self._remove_partial(destination)
                    if attempt < self.max_attempts:
                        await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))

        raise TransportError(
            f"Failed to download '{destination.name}' from {len(urls)} URL(s): "
            f"{last_exception}"
        ) from last_exception

    @staticmethod
    def _remove_partial(path: Path) -> None:
        try:
            if path.exists():
                os.remove(path)
        except OSError as e:
            log.debug(f"Could not remove partial file '{path}': {e}")
