"""
Bilibili API Layer.

This package handles all communication with the Bilibili web API.
"""

from .client import BiliAPIClient
from .rate_limiter import AdaptiveRateLimiter
from .signer import WbiSigner

__all__ = ["AdaptiveRateLimiter", "BiliAPIClient", "WbiSigner"]
