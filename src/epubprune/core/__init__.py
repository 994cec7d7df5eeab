"""Core pruning logic.

Modules:
- archive: Unpack, repack and scratch cleanup
- page_filter: Page discovery, JPEG detection, <p>/<b> stripping
- manifest: content.opf lookup and <item> removal
- pipeline: Single-archive pipeline
- batch: Input discovery and concurrent batch runs
- errors: Exception hierarchy
"""

__all__ = [
    "archive",
    "page_filter",
    "manifest",
    "pipeline",
    "batch",
    "errors",
]
