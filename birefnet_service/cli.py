"""
Command-line entry point: remove backgrounds from local images or URLs.

    birefnet-remove photo.jpg                  # -> photo-nobg.png
    birefnet-remove shots/ --output-dir out/   # every image in shots/
    birefnet-remove https://example.com/a.jpg --model Matting --refine
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from . import config
from .batch import process_batch
from .errors import BackgroundRemovalError, MissingCredentialError
from .inputs import is_remote, iter_images
from .pipeline import build_remover
from .schemas import BiRefNetModel, OperatingResolution, RemovalOptions

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_NO_CREDENTIAL = 2


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Remove image backgrounds with BiRefNet v2 on FAL.ai")
    parser.add_argument("inputs", nargs="+", help="Image paths, directories or http(s) URLs")
    parser.add_argument("--output", help="Output path (single input only)")
    parser.add_argument("--output-dir", help="Directory for all outputs")
    parser.add_argument("--model", choices=[m.value for m in BiRefNetModel], help="BiRefNet model preset")
    parser.add_argument(
        "--resolution", choices=[r.value for r in OperatingResolution], help="Operating resolution"
    )
    parser.add_argument(
        "--refine",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Refine foreground edges (--no-refine overrides BIREFNET_REFINE_FOREGROUND)",
    )
    parser.add_argument("--suffix", help="Suffix appended to output file names")
    parser.add_argument("--workers", type=int, help="Images processed concurrently in batch mode")
    parser.add_argument("--quiet", action="store_true", help="Hide remote progress logs")
    return parser.parse_args(argv)


def expand_inputs(inputs: Sequence[str]) -> List[str]:
    """Replace directories with the images they contain."""
    expanded: List[str] = []
    for item in inputs:
        if not is_remote(item) and Path(item).is_dir():
            expanded.extend(str(p) for p in iter_images(item))
        else:
            expanded.append(item)
    return expanded


def build_options(args: argparse.Namespace, settings: config.Settings) -> RemovalOptions:
    defaults = settings.default_options()
    return RemovalOptions(
        model=args.model or defaults.model,
        operating_resolution=args.resolution or defaults.operating_resolution,
        refine_foreground=defaults.refine_foreground if args.refine is None else args.refine,
        output_suffix=defaults.output_suffix if args.suffix is None else args.suffix,
    )


def main(argv: Optional[Sequence[str]] = None, settings: Optional[config.Settings] = None) -> int:
    args = parse_args(argv)
    settings = settings or config.get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        sources = expand_inputs(args.inputs)
        remover = build_remover(settings, build_options(args, settings))
    except MissingCredentialError as exc:
        logger.error("%s", exc)
        return EXIT_NO_CREDENTIAL
    except BackgroundRemovalError as exc:
        logger.error("%s", exc)
        return EXIT_FAILED

    if not sources:
        logger.error("No images found in %s", ", ".join(args.inputs))
        return EXIT_FAILED

    on_log = (lambda _message: None) if args.quiet else None

    if len(sources) == 1 and args.output_dir is None:
        try:
            artifact = remover.remove_to_file(sources[0], output_path=args.output, on_log=on_log)
        except BackgroundRemovalError as exc:
            logger.error("Failed %s: %s", sources[0], exc)
            return EXIT_FAILED
        print(f"Wrote {artifact.path} ({artifact.result.width}x{artifact.result.height})")
        return EXIT_OK

    if args.output:
        logger.warning("--output is ignored with multiple inputs; use --output-dir")
    report = process_batch(
        remover,
        sources,
        output_dir=args.output_dir,
        max_workers=args.workers or settings.batch_max_workers,
        on_log=on_log,
    )
    for artifact in report.succeeded:
        print(f"Wrote {artifact.path}")
    for source, exc in report.failed:
        print(f"Failed {source}: {exc}")
    return EXIT_OK if report.ok else EXIT_FAILED


if __name__ == "__main__":
    raise SystemExit(main())
