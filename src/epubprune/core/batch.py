"""Batch driver: discover archives and run their pipelines concurrently.

Each archive gets its own scratch directory and output file, so pipelines
share no state. Tasks run on a bounded thread pool; every task is awaited and
its outcome recorded, and a failure in one archive never stops the others.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from epubprune.config.app_config import PruneConfig
from epubprune.core.errors import InputDirectoryError, PipelineError
from epubprune.core.pipeline import ProcessResult, process_epub
from epubprune.utils.validators import archive_stem, split_duplicate_stems

logger = structlog.get_logger(__name__)

EPUB_SUFFIX = ".epub"


@dataclass
class BatchSummary:
    """Per-archive outcomes of a batch run."""

    results: list[ProcessResult] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ProcessResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ProcessResult]:
        return [r for r in self.results if not r.success]

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


def discover_epubs(input_dir: Path) -> list[Path]:
    """Find every .epub file under input_dir, recursively.

    Args:
        input_dir: Directory to scan

    Returns:
        Sorted list of EPUB paths

    Raises:
        InputDirectoryError: If input_dir does not exist or is not a directory
    """
    if not input_dir.is_dir():
        raise InputDirectoryError(input_dir)

    found = sorted(
        p for p in input_dir.rglob("*")
        if p.is_file() and p.suffix.lower() == EPUB_SUFFIX
    )
    logger.info("batch.discovered", input_dir=str(input_dir), count=len(found))
    return found


def _run_one(source: Path, config: PruneConfig) -> ProcessResult:
    """Task boundary: convert any failure into a failed ProcessResult."""
    try:
        return process_epub(source, config)
    except PipelineError as e:
        logger.error(
            "batch.archive_failed",
            archive=source.name,
            step=e.step,
            error=str(e.cause),
        )
        return ProcessResult.failure(source, e.step, str(e.cause))
    except Exception as e:
        logger.exception("batch.archive_crashed", archive=source.name)
        return ProcessResult.failure(source, "unexpected", f"{type(e).__name__}: {e}")


def run_batch(sources: list[Path], config: PruneConfig) -> BatchSummary:
    """Process every archive and collect the outcomes.

    Archives whose base name repeats an earlier one are not run, since they
    would write to the same scratch directory and output file.

    Args:
        sources: EPUB files to process
        config: Run configuration (paths, workers, keying)

    Returns:
        BatchSummary with one result per source, in input order

    Raises:
        OSError: If the extract or output root cannot be created
    """
    unique, duplicates = split_duplicate_stems(sources)
    # Keyed by position so a path listed twice keeps both records
    outcomes: dict[int, ProcessResult] = {}

    for index in duplicates:
        dup = sources[index]
        logger.warning("batch.duplicate_name", archive=str(dup))
        outcomes[index] = ProcessResult.failure(
            dup, "discover", f"nombre duplicado: {archive_stem(dup)}"
        )

    if unique:
        config.extract_dir.mkdir(parents=True, exist_ok=True)
        config.output_dir.mkdir(parents=True, exist_ok=True)

        logger.info("batch.start", archives=len(unique), workers=config.workers)
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            futures = {
                executor.submit(_run_one, sources[index], config): index
                for index in unique
            }
            for future in as_completed(futures):
                outcomes[futures[future]] = future.result()

    summary = BatchSummary(results=[outcomes[i] for i in range(len(sources))])
    logger.info(
        "batch.done",
        succeeded=len(summary.succeeded),
        failed=len(summary.failed),
    )
    return summary
