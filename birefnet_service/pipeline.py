"""
High-level background-removal pipeline.

`BackgroundRemover.remove_to_file` is the main entry point used by the CLI,
the batch runner and the HTTP API. Orchestration is strictly linear:
resolve -> upload (local inputs only) -> submit -> download -> write.
Any step failing aborts the run for that image.
"""

from __future__ import annotations

from io import BytesIO
import logging
from pathlib import Path
from typing import Optional, Tuple

from PIL import Image

from . import config
from .errors import NotFoundError, WriteError
from .fal_backend import FalBackend, LogCallback
from .inputs import (
    DEFAULT_URL_OUTPUT_PATH,
    PathLike,
    ResolvedInput,
    mime_type_for,
    output_path_for,
    resolve_input,
)
from .schemas import JobRequest, JobResult, LocalArtifact, RemovalOptions

logger = logging.getLogger(__name__)


def log_progress(message: str) -> None:
    logger.info("[birefnet] %s", message)


def _image_size(data: bytes) -> Optional[Tuple[int, int]]:
    try:
        with Image.open(BytesIO(data)) as image:
            return image.size
    except Exception:  # noqa: BLE001
        return None


def write_artifact(data: bytes, path: PathLike) -> Path:
    """Write `data` to `path`, replacing any existing file."""
    target = Path(path)
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise WriteError(f"Could not write {target}: {exc}") from exc
    return target


class BackgroundRemover:
    def __init__(
        self,
        backend: FalBackend,
        options: Optional[RemovalOptions] = None,
        url_output_path: PathLike = DEFAULT_URL_OUTPUT_PATH,
    ):
        self.backend = backend
        self.options = options or RemovalOptions()
        self.url_output_path = Path(url_output_path)

    def output_path_for(self, source: PathLike, output_dir: Optional[PathLike] = None) -> Path:
        return output_path_for(
            source,
            suffix=self.options.output_suffix,
            url_output_path=self.url_output_path,
            output_dir=output_dir,
        )

    def _image_url_for(self, resolved: ResolvedInput) -> str:
        if resolved.is_remote:
            return resolved.url
        try:
            data = resolved.path.read_bytes()
        except OSError as exc:
            raise NotFoundError(f"Could not read {resolved.path}: {exc}", source=resolved.source) from exc
        logger.info("Uploading %s (%d bytes)", resolved.path, len(data))
        return self.backend.upload(data, mime_type_for(resolved.path))

    def remove(self, source: PathLike, on_log: Optional[LogCallback] = None) -> JobResult:
        """Run the remote job for `source` and return the parsed result; nothing is written."""
        resolved = resolve_input(source)
        image_url = self._image_url_for(resolved)
        request = JobRequest.from_options(image_url, self.options)
        payload, request_id = self.backend.submit(request, on_log=on_log or log_progress)
        result = JobResult.from_response(payload, request_id=request_id)
        logger.info("BiRefNet finished for %s -> %s", resolved.source, result.url)
        return result

    def fetch(self, result: JobResult) -> bytes:
        """Download the cutout, filling in dimensions the response left out."""
        data = self.backend.download(result.url)
        if result.width is None or result.height is None:
            size = _image_size(data)
            if size is not None:
                result.width, result.height = size
            else:
                logger.warning("Could not read dimensions of %s", result.url)
        return data

    def remove_to_file(
        self,
        source: PathLike,
        output_path: Optional[PathLike] = None,
        on_log: Optional[LogCallback] = None,
    ) -> LocalArtifact:
        """
        Full pipeline from a path or URL to a PNG on disk.

        Raises:
            BackgroundRemovalError: subclass naming the step that failed.
        """
        result = self.remove(source, on_log=on_log)
        data = self.fetch(result)
        target = write_artifact(data, output_path or self.output_path_for(source))
        logger.info("Wrote %s (%d bytes)", target, len(data))
        return LocalArtifact(path=target, size_bytes=len(data), source=str(source), result=result)


def build_remover(
    settings: Optional[config.Settings] = None, options: Optional[RemovalOptions] = None
) -> BackgroundRemover:
    """
    Build a remover from settings.

    Raises:
        MissingCredentialError: before any client is created when FAL_KEY is unset.
    """
    settings = settings or config.get_settings()
    api_key = settings.require_fal_key()
    backend = FalBackend(
        api_key=api_key,
        app_id=settings.birefnet_app_id,
        timeout_seconds=settings.request_timeout_seconds,
        max_upload_bytes=settings.max_upload_bytes,
    )
    return BackgroundRemover(
        backend,
        options=options or settings.default_options(),
        url_output_path=settings.url_output_path,
    )
