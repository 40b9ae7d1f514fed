"""
FastAPI layer exposing BiRefNet background removal.

Endpoints:
 - GET /health
 - POST /remove-bg
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional
from urllib.parse import urljoin

import boto3
from botocore.client import Config as BotoConfig
from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, HttpUrl

from . import config
from .errors import (
    BackgroundRemovalError,
    DownloadError,
    MissingCredentialError,
    ModelError,
    NotFoundError,
    UploadError,
)
from .pipeline import BackgroundRemover, build_remover
from .schemas import BiRefNetModel, OperatingResolution, RemovalOptions

logging.basicConfig(level=getattr(logging, config.get_settings().log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="BiRefNet Background Removal Service", version="0.1.0")


class RemoveBgRequest(BaseModel):
    imageUrl: HttpUrl
    model: Optional[BiRefNetModel] = None
    operatingResolution: Optional[OperatingResolution] = None
    refineForeground: Optional[bool] = None


class RemoveBgResponse(BaseModel):
    outputUrl: str
    width: Optional[int] = None
    height: Optional[int] = None
    contentType: Optional[str] = None
    fileName: Optional[str] = None
    model: str
    operatingResolution: str


def _get_s3_client(settings: config.Settings):
    if not settings.r2_configured:
        raise RuntimeError("R2 configuration is incomplete; check env vars.")
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        aws_access_key_id=settings.r2_access_key_id,
        aws_secret_access_key=settings.r2_secret_access_key,
        endpoint_url=settings.r2_endpoint,
        config=BotoConfig(signature_version="s3v4"),
    )


def _build_public_url(client, settings: config.Settings, key: str) -> str:
    if settings.r2_public_base_url:
        return urljoin(settings.r2_public_base_url.rstrip("/") + "/", key)
    # No public bucket domain: hand out a presigned URL instead
    return client.generate_presigned_url(
        "get_object",
        Params={"Bucket": settings.r2_bucket_name, "Key": key},
        ExpiresIn=3600,
    )


def mirror_to_r2(png_bytes: bytes, settings: config.Settings) -> str:
    """Store the cutout in the configured bucket and return its URL."""
    key = f"birefnet/{uuid.uuid4()}.png"
    client = _get_s3_client(settings)
    client.put_object(
        Bucket=settings.r2_bucket_name,
        Key=key,
        Body=png_bytes,
        ContentType="image/png",
    )
    return _build_public_url(client, settings, key)


def get_remover(settings: config.Settings = Depends(config.get_settings)) -> BackgroundRemover:
    try:
        return build_remover(settings)
    except MissingCredentialError as exc:
        logger.error("FAL credential missing: %s", exc)
        raise HTTPException(status_code=500, detail="Service is missing its FAL_KEY") from exc


def _status_for(exc: BackgroundRemovalError) -> int:
    if isinstance(exc, NotFoundError):
        return 400
    if isinstance(exc, (UploadError, ModelError, DownloadError)):
        return 502
    return 500


@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/remove-bg", response_model=RemoveBgResponse)
def remove_bg(
    body: RemoveBgRequest,
    remover: BackgroundRemover = Depends(get_remover),
    settings: config.Settings = Depends(config.get_settings),
):
    defaults = remover.options
    options = RemovalOptions(
        model=body.model or defaults.model,
        operating_resolution=body.operatingResolution or defaults.operating_resolution,
        refine_foreground=(
            defaults.refine_foreground if body.refineForeground is None else body.refineForeground
        ),
        output_suffix=defaults.output_suffix,
    )
    request_remover = BackgroundRemover(remover.backend, options, url_output_path=remover.url_output_path)

    try:
        result = request_remover.remove(str(body.imageUrl))
        output_url = result.url
        png_bytes = request_remover.fetch(result) if settings.r2_configured else None
    except BackgroundRemovalError as exc:
        logger.error("Background removal failed for %s: %s", body.imageUrl, exc)
        raise HTTPException(status_code=_status_for(exc), detail=exc.message) from exc

    if png_bytes is not None:
        try:
            output_url = mirror_to_r2(png_bytes, settings)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Failed to mirror cutout to R2: %s", exc)
            raise HTTPException(status_code=500, detail="Upload to storage failed") from exc

    return RemoveBgResponse(
        outputUrl=output_url,
        width=result.width,
        height=result.height,
        contentType=result.content_type,
        fileName=result.file_name,
        model=options.model.value,
        operatingResolution=options.operating_resolution.value,
    )
