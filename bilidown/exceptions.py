"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class BilidownError(Exception):
    """Base exception for all application-specific errors."""


class ExtractionError(BilidownError):
    """Raised when no BV identifier can be extracted from the user input."""


class ApiError(BilidownError):
    """Raised when the Bilibili API answers with a non-zero status code."""

    def __init__(self, code: int, message: str = ""):
        self.code = code
        self.message = message
        text = f"API error: {code}"
        if message:
            text += f" - {message}"
        super().__init__(text)


class SigningKeyError(BilidownError):
    """Raised when the WBI mixin key cannot be fetched or derived."""


class NoStreamsError(BilidownError):
    """
    Raised when a manifest yields no usable video stream.
    """


class TransportError(BilidownError):
    """Raised for network-layer failures and undecodable responses."""


class MergeUnavailable(BilidownError):
    """Raised when the external muxer could not merge the downloaded streams."""


class ConfigurationError(BilidownError):
    """Raised for issues related to configuration loading or validation."""
