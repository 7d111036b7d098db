"""
Async client for the Bilibili web API: video metadata, WBI keys and stream manifests.
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from bilidown.exceptions import ApiError, TransportError
from bilidown.models.media import VideoMetadata
from bilidown.models.quality import HIGHEST_QUALITY
from bilidown.utils.fields import get_dict, get_int, get_str

from .rate_limiter import AdaptiveRateLimiter
from .signer import WbiSigner

log = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Referer": "https://www.bilibili.com",
    "Accept": "*/*",
    "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
}

# fnval bit flags requesting DASH with every codec (HDR, 4K, Dolby, 8K, AV1)
FNVAL_ALL_DASH = 4048

THROTTLE_STATUSES = (412, 429)


def get_default_headers() -> Dict[str, str]:
    """Returns a copy of the browser-like headers sent with every request."""
    return dict(DEFAULT_HEADERS)


class BiliAPIClient:
    """
    Async client for the undocumented Bilibili JSON API.

    One instance owns one aiohttp session and one WBI key cache; it is not meant
    to be shared between concurrently running downloads.
    """

    API_BASE_URL = "https://api.bilibili.com"
    VIEW_ENDPOINT = "/x/web-interface/view"
    NAV_ENDPOINT = "/x/web-interface/nav"
    PLAYURL_ENDPOINT = "/x/player/wbi/playurl"

    def __init__(
        self,
        sign_requests: bool = False,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout: Optional[aiohttp.ClientTimeout] = None,
    ):
        """
        Initializes the API client.

        Args:
            sign_requests: Whether manifest requests carry a WBI signature by default.
            max_attempts: Attempts per API call on transport failures.
            base_delay: Base delay in seconds for the exponential backoff.
            timeout: Optional aiohttp timeout; applies to API calls and downloads.
        """
        self.sign_requests = sign_requests
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout = timeout or aiohttp.ClientTimeout(
            total=None, sock_connect=15, sock_read=60
        )

        self._session: Optional[aiohttp.ClientSession] = None
        self._rate_limiter = AdaptiveRateLimiter()
        self._signer = WbiSigner(self)

    @property
    def signer(self) -> WbiSigner:
        """Provides access to the WBI request signer."""
        return self._signer

    async def _initialize_session(self) -> None:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers=get_default_headers(),
                timeout=self.timeout,
            )

    async def get_session(self) -> aiohttp.ClientSession:
        """Returns the shared session, so stream downloads send the same headers."""
        await self._initialize_session()
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BiliAPIClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def api_call(
        self, endpoint: str, params: Optional[List[Tuple[str, str]]] = None
    ) -> Dict[str, Any]:
        """
        Makes a GET request to an API endpoint and returns the decoded JSON body.

        Transport failures are retried with exponential backoff. Application-level
        status codes are left for the caller to interpret.

        Raises:
            TransportError: If every attempt fails or the body is not a JSON object.
        """
        await self._initialize_session()
        url = self.API_BASE_URL + endpoint

        last_exception: Optional[BaseException] = None
        for attempt in range(1, self.max_attempts + 1):
            await self._rate_limiter.acquire()
            start_time = time.monotonic()
            try:
                async with self._session.get(url, params=params) as r:
                    if r.status in THROTTLE_STATUSES:
                        await self._rate_limiter.on_throttled()
                    r.raise_for_status()
                    payload = await r.json(content_type=None)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exception = e
                log.debug(
                    f"API call to {endpoint} failed "
                    f"(attempt {attempt}/{self.max_attempts}): {e}"
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
                continue
            except ValueError as e:
                raise TransportError(f"Invalid JSON from {endpoint}: {e}") from e

            duration_ms = (time.monotonic() - start_time) * 1000
            log.debug(f"API call to {endpoint} took {duration_ms:.0f} ms")

            if not isinstance(payload, dict):
                raise TransportError(f"Unexpected response from {endpoint}: not an object")
            return payload

        raise TransportError(
            f"Request to {endpoint} failed after {self.max_attempts} attempts: "
            f"{last_exception}"
        ) from last_exception

    # Public API Methods
    async def fetch_nav(self) -> Dict[str, Any]:
        """Fetches the nav endpoint, which carries the WBI image URLs."""
        return await self.api_call(self.NAV_ENDPOINT)

    async def fetch_metadata(self, bvid: str) -> VideoMetadata:
        """
        Fetches the metadata of a video.

        Raises:
            ApiError: On any non-zero status code, or when no usable data is returned.
        """
        log.info(f"Fetching video info for [cyan]{bvid}[/cyan]...")
        response = await self.api_call(self.VIEW_ENDPOINT, [("bvid", bvid)])

        code = get_int(response, "code")
        if code != 0:
            raise ApiError(code, get_str(response, "message"))

        data = response.get("data")
        if not isinstance(data, dict):
            raise ApiError(code, "No video data in response")

        cid = get_str(data, "cid")
        if not cid or cid == "0":
            raise ApiError(code, "Could not get CID for video")

        metadata = VideoMetadata(
            bvid=bvid,
            cid=cid,
            aid=get_int(data, "aid"),
            title=get_str(data, "title"),
            description=get_str(data, "desc"),
            duration=get_int(data, "duration"),
            cover=get_str(data, "pic"),
            owner=get_str(get_dict(data, "owner"), "name"),
        )
        log.debug(f"Found video '{metadata.title}' (cid {metadata.cid})")
        return metadata

    async def fetch_manifest(
        self,
        bvid: str,
        cid: str,
        quality: int = int(HIGHEST_QUALITY),
        sign: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Fetches the raw stream manifest (the playurl `data` object).

        Args:
            bvid: The video identifier.
            cid: The content id from the metadata.
            quality: The requested quality rank (`qn`).
            sign: Sign this request with WBI. Defaults to `self.sign_requests`.

        Raises:
            ApiError: On a non-zero status code without any data block.
        """
        log.info("Fetching stream URLs...")
        params = [
            ("bvid", bvid),
            ("cid", str(cid)),
            ("fnval", str(FNVAL_ALL_DASH)),
            ("fourk", "1"),
            ("qn", str(quality)),
        ]
        if self.sign_requests if sign is None else sign:
            params = await self._signer.sign_params(params)

        response = await self.api_call(self.PLAYURL_ENDPOINT, params)

        code = get_int(response, "code")
        message = get_str(response, "message")
        data = response.get("data")

        if code != 0:
            if isinstance(data, dict):
                log.warning(
                    f"[yellow]Playurl API returned error code {code}"
                    f"{f' ({message})' if message else ''}; using partial data.[/yellow]"
                )
                return data
            raise ApiError(code, message)

        if not isinstance(data, dict):
            raise ApiError(code, "Invalid playurl API response: missing data")
        return data
