"""
Configuration loader for the BiRefNet background-removal client.

Environment variables are centralized here. The FAL credential is read once
into `Settings` and handed to the client explicitly; nothing downstream looks
at the process environment.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings

from .errors import MissingCredentialError
from .schemas import (
    DEFAULT_OUTPUT_SUFFIX,
    BiRefNetModel,
    OperatingResolution,
    RemovalOptions,
)


class Settings(BaseSettings):
    # FAL.ai
    fal_key: Optional[str] = Field(None, env="FAL_KEY")
    birefnet_app_id: str = Field("fal-ai/birefnet/v2", env="BIREFNET_APP_ID")

    # Model defaults
    birefnet_default_model: str = Field(BiRefNetModel.GENERAL_LIGHT.value, env="BIREFNET_DEFAULT_MODEL")
    birefnet_default_resolution: str = Field(
        OperatingResolution.RES_1024.value, env="BIREFNET_DEFAULT_RESOLUTION"
    )
    birefnet_refine_foreground: bool = Field(False, env="BIREFNET_REFINE_FOREGROUND")

    # Outputs
    output_suffix: str = Field(DEFAULT_OUTPUT_SUFFIX, env="OUTPUT_SUFFIX")
    url_output_path: Path = Field(Path("output-nobg.png"), env="URL_OUTPUT_PATH")

    # Limits
    max_upload_bytes: int = Field(50 * 1024 * 1024, env="MAX_UPLOAD_BYTES")
    request_timeout_seconds: int = Field(120, env="REQUEST_TIMEOUT_SECONDS")
    batch_max_workers: int = Field(1, env="BATCH_MAX_WORKERS")

    # Cloudflare R2 / S3-compatible mirror for the HTTP API
    r2_endpoint: Optional[str] = Field(None, env="R2_ENDPOINT")
    r2_access_key_id: Optional[str] = Field(None, env="R2_ACCESS_KEY_ID")
    r2_secret_access_key: Optional[str] = Field(None, env="R2_SECRET_ACCESS_KEY")
    r2_bucket_name: Optional[str] = Field(None, env="R2_BUCKET_NAME")
    r2_public_base_url: Optional[str] = Field(None, env="R2_PUBLIC_BASE_URL")

    log_level: str = Field("INFO", env="LOG_LEVEL")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @validator("birefnet_default_model")
    def validate_model(cls, v: str) -> str:  # noqa: B902
        if v not in {m.value for m in BiRefNetModel}:
            raise ValueError("BIREFNET_DEFAULT_MODEL must name a BiRefNet v2 preset")
        return v

    @validator("birefnet_default_resolution")
    def validate_resolution(cls, v: str) -> str:  # noqa: B902
        if v not in {r.value for r in OperatingResolution}:
            raise ValueError("BIREFNET_DEFAULT_RESOLUTION must be 1024x1024 or 2048x2048")
        return v

    @validator("batch_max_workers")
    def validate_workers(cls, v: int) -> int:  # noqa: B902
        if v < 1:
            raise ValueError("BATCH_MAX_WORKERS must be >= 1")
        return v

    @property
    def r2_configured(self) -> bool:
        return all(
            v
            for v in (
                self.r2_endpoint,
                self.r2_access_key_id,
                self.r2_secret_access_key,
                self.r2_bucket_name,
            )
        )

    def require_fal_key(self) -> str:
        """Return the FAL credential or fail before any network call is made."""
        if not self.fal_key or not self.fal_key.strip():
            raise MissingCredentialError()
        return self.fal_key.strip()

    def default_options(self) -> RemovalOptions:
        return RemovalOptions(
            model=self.birefnet_default_model,
            operating_resolution=self.birefnet_default_resolution,
            refine_foreground=self.birefnet_refine_foreground,
            output_suffix=self.output_suffix,
        )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    return Settings()
