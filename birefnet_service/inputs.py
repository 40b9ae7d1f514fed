"""
Input resolution and path conventions.

A source is either an http(s) URL, forwarded to the model as-is, or a local
file that gets uploaded first. Outputs default to a `<stem><suffix>.png`
sibling of the input.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urlparse

from .errors import NotFoundError
from .schemas import DEFAULT_OUTPUT_SUFFIX, OUTPUT_FORMAT

SUPPORTED_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
DEFAULT_URL_OUTPUT_PATH = Path("output-nobg.png")

PathLike = Union[str, Path]


@dataclass
class ResolvedInput:
    source: str
    path: Optional[Path] = None
    url: Optional[str] = None

    @property
    def is_remote(self) -> bool:
        return self.url is not None


def is_remote(source: PathLike) -> bool:
    if isinstance(source, Path):
        return False
    return urlparse(source).scheme in {"http", "https"}


def resolve_input(source: PathLike) -> ResolvedInput:
    """
    Classify `source` and validate local paths.

    URLs are not checked locally; the remote model reports unreachable ones.

    Raises:
        NotFoundError: when a local path is missing, not a file, or unreadable.
    """
    if is_remote(source):
        return ResolvedInput(source=str(source), url=str(source))

    path = Path(source).expanduser()
    if not path.exists():
        raise NotFoundError(f"Input file not found: {path}", source=str(source))
    if not path.is_file():
        raise NotFoundError(f"Input is not a file: {path}", source=str(source))
    if not os.access(path, os.R_OK):
        raise NotFoundError(f"Input file is not readable: {path}", source=str(source))
    return ResolvedInput(source=str(source), path=path)


def mime_type_for(path: PathLike) -> str:
    """PNG inputs upload as image/png; everything else is sent as image/jpeg."""
    if Path(path).suffix.lower() == ".png":
        return "image/png"
    return "image/jpeg"


def _stem_for(source: PathLike) -> str:
    if is_remote(source):
        stem = Path(urlparse(str(source)).path).stem
        return stem or "output"
    return Path(source).expanduser().stem


def output_path_for(
    source: PathLike,
    suffix: str = DEFAULT_OUTPUT_SUFFIX,
    url_output_path: PathLike = DEFAULT_URL_OUTPUT_PATH,
    output_dir: Optional[PathLike] = None,
) -> Path:
    """
    Destination for the cutout of `source`.

    `a/b/photo.jpg` -> `a/b/photo-nobg.png`. URL sources land on the fixed
    `url_output_path` unless an `output_dir` is given, in which case every
    source is written there under its own stem.
    """
    filename = f"{_stem_for(source)}{suffix}.{OUTPUT_FORMAT}"
    if output_dir is not None:
        return Path(output_dir) / filename
    if is_remote(source):
        return Path(url_output_path)
    return Path(source).expanduser().with_name(filename)


def iter_images(directory: PathLike) -> List[Path]:
    """Supported images directly inside `directory`, sorted by name."""
    root = Path(directory)
    if not root.is_dir():
        raise NotFoundError(f"Input directory not found: {root}", source=str(directory))
    return [
        p for p in sorted(root.iterdir()) if p.is_file() and p.suffix.lower() in SUPPORTED_EXTENSIONS
    ]
