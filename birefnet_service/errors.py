"""
Error taxonomy for the background-removal pipeline.

Every step wraps the third-party exception it hits into one of these so the
CLI, batch runner and HTTP layer only need to handle a single hierarchy.
"""

from __future__ import annotations

from typing import Optional


class BackgroundRemovalError(Exception):
    """Base error for a failed background-removal run."""

    def __init__(self, message: str, source: Optional[str] = None):
        self.message = message
        self.source = source
        super().__init__(message)


class MissingCredentialError(BackgroundRemovalError):
    """FAL_KEY is not configured."""

    def __init__(self, message: str = "FAL_KEY is not set; export it before running", **kwargs):
        super().__init__(message, **kwargs)


class NotFoundError(BackgroundRemovalError):
    """Local input file is missing or unreadable."""


class UploadError(BackgroundRemovalError):
    """Uploading the input to FAL storage failed."""


class ModelError(BackgroundRemovalError):
    """Remote inference failed, the model name was invalid, or the response was malformed."""


class DownloadError(BackgroundRemovalError):
    """Fetching the result image failed."""


class WriteError(BackgroundRemovalError):
    """Persisting the result to disk failed."""
