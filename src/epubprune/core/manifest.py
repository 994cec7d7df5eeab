"""Manifest (content.opf) locating and patching.

The manifest is edited as text: each <item> element is matched with a regular
expression, its attributes are read, and only items that are text/html pages
whose key matches a removed page are cut out. Every other byte of the manifest
stays as it was.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from epubprune.core.errors import ManifestNotFoundError
from epubprune.core.page_filter import KeyMode, read_markup, write_markup

logger = structlog.get_logger(__name__)

MANIFEST_NAME = "content.opf"
PAGE_MEDIA_TYPE = "text/html"

ITEM_PATTERN = re.compile(
    r"<item\b[^>]*?(?:/>|>\s*</item\s*>)",
    re.DOTALL,
)
ATTRIBUTE_PATTERN = re.compile(
    r"""([\w:.-]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""",
)


def find_manifest(root: Path) -> Path:
    """Locate content.opf anywhere under root.

    Args:
        root: Unpacked archive directory

    Returns:
        Path of the first content.opf in sorted walk order

    Raises:
        ManifestNotFoundError: If no content.opf exists under root
    """
    candidates = sorted(p for p in root.rglob(MANIFEST_NAME) if p.is_file())
    if not candidates:
        raise ManifestNotFoundError(root)
    if len(candidates) > 1:
        logger.warning(
            "manifest.multiple_found",
            using=str(candidates[0]),
            ignored=[str(p) for p in candidates[1:]],
        )
    return candidates[0]


def parse_item_attributes(item: str) -> dict[str, str]:
    """Return the attributes of an <item> tag as a dict."""
    attrs = {}
    for match in ATTRIBUTE_PATTERN.finditer(item):
        name, double_quoted, single_quoted = match.groups()
        attrs[name] = double_quoted if double_quoted is not None else single_quoted
    return attrs


def remove_manifest_items(
    text: str,
    keys: list[str],
    key_mode: KeyMode = KeyMode.FILENAME,
) -> tuple[str, int]:
    """Remove page <item> elements that reference removed pages.

    An item is removed when its media-type is exactly text/html and its href
    (filename mode) or id (id mode) equals one of the keys. Keys are compared
    literally.

    Args:
        text: Manifest content
        keys: Removal keys collected by the page filter
        key_mode: Which attribute the keys refer to

    Returns:
        Tuple of (new_text, removed_count)
    """
    if not keys:
        return text, 0

    wanted = set(keys)
    attribute = "href" if key_mode is KeyMode.FILENAME else "id"
    removed = 0

    def _replace(match: re.Match[str]) -> str:
        nonlocal removed
        attrs = parse_item_attributes(match.group(0))
        if attrs.get("media-type") == PAGE_MEDIA_TYPE and attrs.get(attribute) in wanted:
            removed += 1
            return ""
        return match.group(0)

    new_text = ITEM_PATTERN.sub(_replace, text)
    return new_text, removed


def update_manifest(
    manifest_path: Path,
    keys: list[str],
    key_mode: KeyMode = KeyMode.FILENAME,
) -> int:
    """Rewrite content.opf without items for removed pages.

    Args:
        manifest_path: Path to content.opf
        keys: Removal keys, in the order the pages were removed
        key_mode: Keying scheme used when collecting keys

    Returns:
        Number of <item> elements removed
    """
    text = read_markup(manifest_path)
    new_text, removed = remove_manifest_items(text, keys, key_mode)

    if removed:
        write_markup(manifest_path, new_text)

    unmatched = len(set(keys)) - removed
    if unmatched > 0:
        logger.debug("manifest.keys_unmatched", count=unmatched)

    logger.info("manifest.updated", manifest=str(manifest_path), items_removed=removed)
    return removed
