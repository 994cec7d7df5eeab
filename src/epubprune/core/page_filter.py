"""Page scanning, filtering and tag stripping.

Responsibilities:
- Find page documents (page*.html) under an unpacked archive
- Detect whether a page references a JPEG image
- Delete pages without a JPEG and collect their manifest removal keys
- Strip <p> and <b> spans from the pages that stay

Markup is handled as text with regular expressions, not parsed. The tag
patterns only accept the bare tag name or the name followed by whitespace,
so <pre>, <body>, <br/> and <big> are never mistaken for <p> or <b>.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

PAGE_GLOB = "page*.html"
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"

JPEG_IMG_PATTERN = re.compile(r'<img[^>]+src="[^"]+\.jpeg"', re.IGNORECASE)
PAGE_ID_PATTERN = re.compile(r'id="([^"]+)"')

# Applied in order; <p> spans first, then <b>
STRIP_PATTERNS = [
    re.compile(r"<p(?:\s[^>]*)?>.*?</p>", re.DOTALL),
    re.compile(r"<b(?:\s[^>]*)?>.*?</b>", re.DOTALL),
]


class KeyMode(str, Enum):
    """How removed pages are identified in the manifest."""

    FILENAME = "filename"  # href relative to content.opf
    ID = "id"  # first id="..." attribute of the page


@dataclass
class FilterResult:
    """Outcome of filtering one unpacked archive."""

    kept: list[Path] = field(default_factory=list)
    removed: list[Path] = field(default_factory=list)
    removal_keys: list[str] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return len(self.kept) + len(self.removed)


def read_markup(path: Path) -> str:
    """Read markup without newline translation; stray bytes survive a rewrite."""
    return path.read_bytes().decode(TEXT_ENCODING, TEXT_ERRORS)


def write_markup(path: Path, text: str) -> None:
    path.write_bytes(text.encode(TEXT_ENCODING, TEXT_ERRORS))


def find_pages(root: Path) -> list[Path]:
    """Return every regular page*.html file under root, sorted."""
    return sorted(p for p in root.rglob(PAGE_GLOB) if p.is_file())


def has_jpeg_reference(html: str) -> bool:
    """True if some <img> tag has a src ending in .jpeg (any case)."""
    return JPEG_IMG_PATTERN.search(html) is not None


def extract_page_id(html: str) -> str | None:
    """Return the value of the first id="..." attribute, or None."""
    match = PAGE_ID_PATTERN.search(html)
    return match.group(1) if match else None


def strip_tag_content(html: str) -> str:
    """Remove <p>...</p> then <b>...</b> spans, tags and content together.

    Matching is non-greedy and spans newlines, so an opening tag pairs with
    the nearest following closing tag of the same name. Passes repeat until
    nothing changes, which keeps the function idempotent when a removal joins
    two fragments into a new span.

    Args:
        html: Page markup

    Returns:
        Markup with every matched span removed
    """
    result = html
    while True:
        stripped = result
        for pattern in STRIP_PATTERNS:
            stripped = pattern.sub("", stripped)
        if stripped == result:
            return result
        result = stripped


def _removal_key(page: Path, html: str, manifest_dir: Path, key_mode: KeyMode) -> str | None:
    """Compute the manifest key for a page that is about to be removed."""
    if key_mode is KeyMode.ID:
        return extract_page_id(html)
    # May climb out of manifest_dir ("../page2.html"), as hrefs do
    return Path(os.path.relpath(page, manifest_dir)).as_posix()


def filter_pages(
    root: Path,
    manifest_dir: Path | None = None,
    key_mode: KeyMode = KeyMode.FILENAME,
) -> FilterResult:
    """Delete non-JPEG pages and strip tags from the rest, in place.

    Args:
        root: Unpacked archive directory
        manifest_dir: Directory holding content.opf; hrefs are relative to it
            (defaults to root)
        key_mode: Keying scheme for removed pages

    Returns:
        FilterResult with kept/removed pages and removal keys in walk order
    """
    base = manifest_dir or root
    result = FilterResult()

    for page in find_pages(root):
        html = read_markup(page)

        if not has_jpeg_reference(html):
            key = _removal_key(page, html, base, key_mode)
            if key is None:
                logger.warning("page_filter.no_id", page=page.name)
            else:
                result.removal_keys.append(key)
            page.unlink()
            result.removed.append(page)
            logger.debug("page_filter.removed", page=page.name, key=key)
            continue

        stripped = strip_tag_content(html)
        if stripped != html:
            write_markup(page, stripped)
        result.kept.append(page)

    logger.info(
        "page_filter.done",
        kept=len(result.kept),
        removed=len(result.removed),
        key_mode=key_mode.value,
    )
    return result
