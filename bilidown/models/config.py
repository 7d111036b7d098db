"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import logging

from pydantic import BaseModel, Field, field_validator

from .quality import DEFAULT_QUALITY, QUALITY_MAP

log = logging.getLogger(__name__)

SUPPORTED_MERGE_EXTENSIONS = ("mp4", "mkv")


class DownloadConfig(BaseModel):
    """A validated configuration model for the application."""

    # Download Settings
    output_dir: str = "./downloads"
    quality: int = int(DEFAULT_QUALITY)
    max_attempts: int = 3

    # Merge Settings
    merge: bool = True
    merge_ext: str = "mp4"
    ffmpeg_path: str = "ffmpeg"
    keep_audio_on_merge_failure: bool = True

    # API Settings
    sign_requests: bool = False

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)
    source_url: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("quality")
    @classmethod
    def validate_quality(cls, v: int) -> int:
        """Ensures a positive rank; ranks missing from the table are matched as-is."""
        if v <= 0:
            raise ValueError("Quality must be a positive rank, e.g. 80 for 1080P.")
        if v not in QUALITY_MAP:
            log.warning(
                f"[yellow]Quality {v} is not a known rank; "
                "it will only match streams with exactly that id.[/yellow]"
            )
        return v

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        """Ensures a reasonable number of retry attempts."""
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("merge_ext")
    @classmethod
    def validate_merge_ext(cls, v: str) -> str:
        v = v.lower().lstrip(".")
        if v not in SUPPORTED_MERGE_EXTENSIONS:
            raise ValueError(
                f"Merge extension must be one of {', '.join(SUPPORTED_MERGE_EXTENSIONS)}."
            )
        return v

    @field_validator("output_dir", "ffmpeg_path")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        if not v:
            raise ValueError("Value cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path", "source_url"}
        return {key for key in cls.model_fields if key not in internal_fields}
