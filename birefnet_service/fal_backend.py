"""
FAL.ai transport for BiRefNet v2.

Three remote calls, none retried:
 - upload local bytes to FAL storage,
 - submit the job to the queue and follow it until completion,
 - download the produced image.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Set, Tuple

import fal_client
import requests

from .errors import DownloadError, MissingCredentialError, ModelError, UploadError
from .schemas import JobRequest

logger = logging.getLogger(__name__)

DEFAULT_APP_ID = "fal-ai/birefnet/v2"
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024

LogCallback = Callable[[str], None]


class FalBackend:
    """Thin wrapper over `fal_client.SyncClient` with an explicit API key."""

    def __init__(
        self,
        api_key: str,
        app_id: str = DEFAULT_APP_ID,
        timeout_seconds: float = 120.0,
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
    ):
        if not api_key:
            raise MissingCredentialError()
        self.app_id = app_id
        self.timeout_seconds = timeout_seconds
        self.max_upload_bytes = max_upload_bytes
        self._client = fal_client.SyncClient(key=api_key, default_timeout=timeout_seconds)

    def upload(self, data: bytes, content_type: str) -> str:
        """Send raw bytes to FAL storage and return the public URL."""
        if len(data) > self.max_upload_bytes:
            raise UploadError(
                f"Payload of {len(data)} bytes exceeds the {self.max_upload_bytes} byte upload limit"
            )
        try:
            url = self._client.upload(data, content_type)
        except Exception as exc:  # noqa: BLE001
            raise UploadError(f"Upload to FAL storage failed: {exc}") from exc
        logger.debug("Uploaded %d bytes (%s) -> %s", len(data), content_type, url)
        return url

    def submit(
        self, request: JobRequest, on_log: Optional[LogCallback] = None
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        """
        Run `request` on the queue and block until it finishes.

        Progress log lines are passed to `on_log` as they appear; they never
        influence control flow. Returns the raw result payload and request id.
        """
        arguments = request.to_arguments()
        request_id: Optional[str] = None
        try:
            handle = self._client.submit(self.app_id, arguments=arguments)
            request_id = getattr(handle, "request_id", None)
            logger.info("Submitted %s request_id=%s model=%s", self.app_id, request_id, request.model.value)

            seen: Set[Tuple[Any, Any]] = set()
            for event in handle.iter_events(with_logs=True):
                for entry in getattr(event, "logs", None) or []:
                    key = (entry.get("timestamp"), entry.get("message"))
                    if key in seen:
                        continue
                    seen.add(key)
                    if on_log is not None and entry.get("message"):
                        on_log(entry["message"])

            result = handle.get()
        except Exception as exc:  # noqa: BLE001
            raise ModelError(f"BiRefNet request {request_id or '<unsubmitted>'} failed: {exc}") from exc

        if not isinstance(result, dict):
            raise ModelError(f"Malformed BiRefNet response: {result!r}")
        return result, request_id

    def download(self, url: str) -> bytes:
        try:
            resp = requests.get(url, timeout=(5, self.timeout_seconds))
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise DownloadError(f"Could not download result from {url}: {exc}") from exc
        return resp.content
