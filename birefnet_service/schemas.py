"""
Request/result types exchanged with the BiRefNet v2 endpoint.

The enum values are the exact strings the remote API expects, so they are
forwarded verbatim in the job payload.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .errors import ModelError

OUTPUT_FORMAT = "png"
DEFAULT_OUTPUT_SUFFIX = "-nobg"


class BiRefNetModel(str, Enum):
    GENERAL_LIGHT = "General Use (Light)"
    GENERAL_HEAVY = "General Use (Heavy)"
    MATTING = "Matting"  # hair, fur and other fine structures
    PORTRAIT = "Portrait"


class OperatingResolution(str, Enum):
    RES_1024 = "1024x1024"
    RES_2048 = "2048x2048"


def parse_model(value: Union[str, BiRefNetModel]) -> BiRefNetModel:
    try:
        return BiRefNetModel(value)
    except ValueError as exc:
        choices = ", ".join(m.value for m in BiRefNetModel)
        raise ModelError(f"Unknown BiRefNet model {value!r}; expected one of: {choices}") from exc


def parse_resolution(value: Union[str, OperatingResolution]) -> OperatingResolution:
    try:
        return OperatingResolution(value)
    except ValueError as exc:
        choices = ", ".join(r.value for r in OperatingResolution)
        raise ModelError(f"Unknown operating resolution {value!r}; expected one of: {choices}") from exc


@dataclass(frozen=True)
class RemovalOptions:
    """Per-run model configuration shared by every image the remover handles."""

    model: BiRefNetModel = BiRefNetModel.GENERAL_LIGHT
    operating_resolution: OperatingResolution = OperatingResolution.RES_1024
    refine_foreground: bool = False
    output_suffix: str = DEFAULT_OUTPUT_SUFFIX

    def __post_init__(self) -> None:
        object.__setattr__(self, "model", parse_model(self.model))
        object.__setattr__(self, "operating_resolution", parse_resolution(self.operating_resolution))
        object.__setattr__(self, "refine_foreground", bool(self.refine_foreground))


@dataclass(frozen=True)
class JobRequest:
    image_url: str
    model: BiRefNetModel
    operating_resolution: OperatingResolution
    refine_foreground: bool = False
    output_format: str = OUTPUT_FORMAT

    @classmethod
    def from_options(cls, image_url: str, options: RemovalOptions) -> "JobRequest":
        return cls(
            image_url=image_url,
            model=options.model,
            operating_resolution=options.operating_resolution,
            refine_foreground=options.refine_foreground,
        )

    def to_arguments(self) -> Dict[str, Any]:
        """Payload for the remote call; values are passed through untouched."""
        return {
            "image_url": self.image_url,
            "model": self.model.value,
            "operating_resolution": self.operating_resolution.value,
            "refine_foreground": self.refine_foreground,
            "output_format": self.output_format,
        }


@dataclass
class JobResult:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    content_type: Optional[str] = None
    file_name: Optional[str] = None
    request_id: Optional[str] = None

    @classmethod
    def from_response(cls, payload: Any, request_id: Optional[str] = None) -> "JobResult":
        """
        Parse `{image: {...}}` (or the wrapped `{data: {image: {...}}}`).

        Raises:
            ModelError: when the response carries no `image.url`.
        """
        body = payload
        if isinstance(body, dict) and isinstance(body.get("data"), dict):
            body = body["data"]
        image = body.get("image") if isinstance(body, dict) else None
        if not isinstance(image, dict) or not image.get("url"):
            raise ModelError(f"Malformed BiRefNet response, missing image.url: {payload!r}")
        return cls(
            url=image["url"],
            width=image.get("width"),
            height=image.get("height"),
            content_type=image.get("content_type"),
            file_name=image.get("file_name"),
            request_id=request_id,
        )


@dataclass
class LocalArtifact:
    path: Path
    size_bytes: int
    source: str
    result: JobResult


@dataclass
class BatchReport:
    succeeded: List[LocalArtifact] = field(default_factory=list)
    failed: List[Tuple[str, Exception]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed
