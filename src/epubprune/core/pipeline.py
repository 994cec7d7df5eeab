"""Single-archive pruning pipeline.

Steps (strictly sequential):
1. unpack: extract the EPUB into <extract_dir>/<stem>
2. locate_manifest: find content.opf in the scratch tree
3. filter_pages: delete pages without a JPEG, strip <p>/<b> from the rest
4. update_manifest: drop <item> entries for the deleted pages
5. repack: zip the scratch tree into <output_dir>/<stem>_processed.epub
6. cleanup: delete the scratch tree

A failure at any step stops the pipeline and leaves the scratch tree in place
for inspection.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog

from epubprune.config.app_config import PruneConfig
from epubprune.core.archive import clean_scratch, repack_archive, unpack_archive
from epubprune.core.errors import OutputExistsError, PipelineError, PruneError
from epubprune.core.manifest import find_manifest, update_manifest
from epubprune.core.page_filter import filter_pages

logger = structlog.get_logger(__name__)


@dataclass
class ProcessResult:
    """Result of processing one archive."""

    source: Path
    success: bool
    output: Path | None = None
    pages_kept: int = 0
    pages_removed: int = 0
    items_removed: int = 0
    failed_step: str | None = None
    error: str | None = None

    @classmethod
    def failure(cls, source: Path, step: str, error: str) -> ProcessResult:
        return cls(source=source, success=False, failed_step=step, error=error)


def process_epub(source: Path, config: PruneConfig) -> ProcessResult:
    """Run the full prune pipeline for one EPUB.

    Args:
        source: EPUB file to process
        config: Paths and keying scheme for the run

    Returns:
        ProcessResult describing the successful run

    Raises:
        PipelineError: If any step fails; carries the step name and cause
    """
    scratch = config.scratch_dir_for(source)
    output = config.output_path_for(source)
    log = logger.bind(archive=source.name)

    log.info("pipeline.start", scratch=str(scratch), output=str(output))

    # Fail before touching the scratch tree if the output is taken
    step = "repack"
    try:
        if output.exists():
            raise OutputExistsError(output)

        step = "unpack"
        if scratch.exists():
            log.warning("pipeline.stale_scratch_removed", scratch=str(scratch))
            clean_scratch(scratch)
        unpack_archive(source, scratch)

        step = "locate_manifest"
        manifest_path = find_manifest(scratch)

        step = "filter_pages"
        filtered = filter_pages(scratch, manifest_path.parent, config.key_mode)

        step = "update_manifest"
        items_removed = update_manifest(manifest_path, filtered.removal_keys, config.key_mode)

        step = "repack"
        entries = repack_archive(scratch, output)

        step = "cleanup"
        clean_scratch(scratch)
    except (PruneError, OSError) as e:
        log.error("pipeline.failed", step=step, error=str(e))
        raise PipelineError(source, step, e) from e

    log.info(
        "pipeline.done",
        pages_kept=len(filtered.kept),
        pages_removed=len(filtered.removed),
        items_removed=items_removed,
        entries=entries,
    )

    return ProcessResult(
        source=source,
        success=True,
        output=output,
        pages_kept=len(filtered.kept),
        pages_removed=len(filtered.removed),
        items_removed=items_removed,
    )
