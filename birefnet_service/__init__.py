"""
BiRefNet v2 background removal client package.

Wraps the hosted FAL.ai model behind a small pipeline: resolve the input,
upload it, run the remote job, download the cutout and write it to disk.
The same pipeline backs the CLI, the batch helper and the FastAPI layer.
"""

from .errors import (
    BackgroundRemovalError,
    DownloadError,
    MissingCredentialError,
    ModelError,
    NotFoundError,
    UploadError,
    WriteError,
)
from .pipeline import BackgroundRemover, build_remover
from .schemas import BiRefNetModel, OperatingResolution, RemovalOptions

__all__ = [
    "BackgroundRemovalError",
    "BackgroundRemover",
    "BiRefNetModel",
    "DownloadError",
    "MissingCredentialError",
    "ModelError",
    "NotFoundError",
    "OperatingResolution",
    "RemovalOptions",
    "UploadError",
    "WriteError",
    "build_remover",
]
