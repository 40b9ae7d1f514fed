"""
Batch runner.

Repeats the single-image pipeline per source. A failing image is logged and
recorded, and the remaining images still run. With `max_workers > 1` images
run on a bounded thread pool; the report keeps input order either way.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set, Tuple, Union

from .errors import BackgroundRemovalError
from .fal_backend import LogCallback
from .inputs import PathLike, is_remote
from .pipeline import BackgroundRemover
from .schemas import BatchReport, LocalArtifact

logger = logging.getLogger(__name__)

Outcome = Tuple[str, Union[LocalArtifact, Exception]]


def _unique(path: Path, taken: Set[Path]) -> Path:
    candidate = path
    counter = 2
    while candidate in taken:
        candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
        counter += 1
    taken.add(candidate)
    return candidate


def plan_outputs(
    remover: BackgroundRemover, sources: List[PathLike], output_dir: Optional[PathLike] = None
) -> List[Path]:
    """
    One distinct destination per source.

    Several URL sources cannot share the fixed URL output path, so without an
    `output_dir` they are named after their URL stem beside it. Names that
    still collide get a `-2`, `-3`... suffix.
    """
    url_dir: Optional[Path] = None
    if output_dir is None and sum(1 for s in sources if is_remote(s)) > 1:
        url_dir = remover.url_output_path.parent

    taken: Set[Path] = set()
    planned = []
    for source in sources:
        target_dir = url_dir if (url_dir is not None and is_remote(source)) else output_dir
        planned.append(_unique(remover.output_path_for(source, output_dir=target_dir), taken))
    return planned


def _process_one(
    remover: BackgroundRemover,
    source: PathLike,
    output_path: Path,
    on_log: Optional[LogCallback] = None,
) -> Outcome:
    try:
        return str(source), remover.remove_to_file(source, output_path, on_log=on_log)
    except BackgroundRemovalError as exc:
        logger.error("Failed %s: %s", source, exc)
        return str(source), exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected failure processing %s", source)
        return str(source), exc


def process_batch(
    remover: BackgroundRemover,
    sources: Iterable[PathLike],
    output_dir: Optional[PathLike] = None,
    max_workers: int = 1,
    on_log: Optional[LogCallback] = None,
) -> BatchReport:
    """
    Process every source and return which ones succeeded and which failed.

    Sources are independent; one failing never stops the others. Without
    `output_dir` local outputs follow the single-image naming convention.
    """
    items = list(sources)
    targets = plan_outputs(remover, items, output_dir)
    logger.info("Processing batch of %d image(s) workers=%d", len(items), max_workers)

    if max_workers <= 1:
        outcomes = [_process_one(remover, s, t, on_log) for s, t in zip(items, targets)]
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            outcomes = list(pool.map(lambda st: _process_one(remover, st[0], st[1], on_log), zip(items, targets)))

    report = BatchReport()
    for source, outcome in outcomes:
        if isinstance(outcome, Exception):
            report.failed.append((source, outcome))
        else:
            report.succeeded.append(outcome)
    logger.info("Batch done: %d succeeded, %d failed", len(report.succeeded), len(report.failed))
    return report
