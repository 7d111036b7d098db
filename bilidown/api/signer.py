"""
Implements WBI request signing for the Bilibili web API.

The mixin key is derived from the two image URLs returned by the nav endpoint
and is cached per signer instance for a short time.
"""

import hashlib
import logging
import time
from typing import TYPE_CHECKING, Any, Iterable, Optional

from bilidown.exceptions import SigningKeyError, TransportError
from bilidown.models.media import SigningContext

if TYPE_CHECKING:
    from .client import BiliAPIClient

log = logging.getLogger(__name__)

# Permutation applied to the 64-char lookup string, taken from the web player
MIXIN_KEY_ENC_TAB = [
    46, 47, 18, 2, 53, 8, 23, 32, 15, 50, 10, 31, 58, 3, 45, 35,
    27, 43, 5, 49, 33, 9, 42, 19, 29, 28, 14, 39, 12, 38, 41, 13,
    37, 48, 7, 16, 24, 55, 40, 61, 26, 17, 0, 1, 60, 51, 30, 4,
    22, 25, 54, 21, 56, 59, 6, 63, 57, 62, 11, 36, 20, 34, 44, 52,
]  # fmt: skip

MIXIN_KEY_LENGTH = 32
LOOKUP_MIN_LENGTH = 64
FILTERED_VALUE_CHARS = "!'()*"

Params = list[tuple[str, str]]


def _url_stem(url: str) -> str:
    """Returns the file name of a URL without its extension."""
    filename = url.rsplit("/", 1)[-1]
    return filename.split(".", 1)[0]


def derive_mixin_key(lookup: str) -> str:
    """
    Builds the 32-char mixin key by indexing `lookup` with the permutation table.

    Raises:
        SigningKeyError: If the lookup string is shorter than 64 characters.
    """
    if len(lookup) < LOOKUP_MIN_LENGTH:
        raise SigningKeyError(
            f"WBI lookup string too short ({len(lookup)} < {LOOKUP_MIN_LENGTH})."
        )
    return "".join(lookup[i] for i in MIXIN_KEY_ENC_TAB)[:MIXIN_KEY_LENGTH]


def _filter_value(value: Any) -> str:
    return "".join(c for c in str(value) if c not in FILTERED_VALUE_CHARS)


class WbiSigner:
    """
    Produces WBI signatures (`wts` + `w_rid`) for API query parameters.
    """

    def __init__(self, api_client: "BiliAPIClient"):
        """
        Args:
            api_client: The client used to reach the nav endpoint.
        """
        self._api_client = api_client
        self._context = SigningContext()

    @property
    def context(self) -> SigningContext:
        return self._context

    async def get_signing_key(self) -> str:
        """
        Returns the cached mixin key while it is fresh, otherwise fetches a new one.

        Raises:
            SigningKeyError: If the nav endpoint is unreachable or its data unusable.
        """
        now = time.time()
        if self._context.is_fresh(now):
            return self._context.key

        try:
            response = await self._api_client.fetch_nav()
        except TransportError as e:
            raise SigningKeyError(f"Could not reach the WBI key endpoint: {e}") from e

        code = response.get("code", 0)
        if code != 0:
            # -101 (not logged in) responses still carry wbi_img
            message = response.get("message") or ""
            log.warning(
                f"WBI API error: {code}" + (f" - {message}" if message else "")
            )

        data = response.get("data")
        wbi_img = data.get("wbi_img") if isinstance(data, dict) else None
        if not isinstance(wbi_img, dict):
            raise SigningKeyError("No WBI image data in nav response.")

        lookup = ""
        for key in ("img_url", "sub_url"):
            url = wbi_img.get(key)
            if isinstance(url, str) and url:
                lookup += _url_stem(url)

        mixin_key = derive_mixin_key(lookup)
        self._context = SigningContext(key=mixin_key, fetched_at=now)
        log.debug(f"Fetched new WBI mixin key: {mixin_key[:8]}...")
        return mixin_key

    def sign(
        self,
        params: Iterable[tuple[str, Any]],
        mixin_key: Optional[str] = None,
        timestamp: Optional[int] = None,
    ) -> Params:
        """
        Returns a signed copy of `params`, sorted by key, ending with `w_rid`.

        Args:
            params: Query parameters as (key, value) pairs.
            mixin_key: The key to sign with. Defaults to the cached key.
            timestamp: Epoch seconds for `wts`. Defaults to now.
        """
        key = mixin_key if mixin_key is not None else self._context.key
        if not key:
            raise SigningKeyError("No mixin key available. Fetch one first.")

        wts = int(time.time()) if timestamp is None else int(timestamp)
        pairs = [(str(k), _filter_value(v)) for k, v in params]
        pairs.append(("wts", str(wts)))
        pairs.sort(key=lambda pair: pair[0])

        query = "&".join(f"{k}={v}" for k, v in pairs)
        w_rid = hashlib.md5((query + key).encode("utf-8")).hexdigest()  # noqa: S324
        pairs.append(("w_rid", w_rid))
        return pairs

    async def sign_params(self, params: Iterable[tuple[str, Any]]) -> Params:
        """Fetches (or reuses) the mixin key and signs the parameters."""
        mixin_key = await self.get_signing_key()
        return self.sign(params, mixin_key=mixin_key)
