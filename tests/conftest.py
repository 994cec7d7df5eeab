"""Pytest configuration for phased testing.

Tests are organized by phase (f1, f2, f3).
Only tests for the current phase and completed phases should run.
Future phase tests are automatically skipped.

Shared fixtures build small EPUB archives on disk.
"""

import struct
import zipfile
from pathlib import Path

import pytest

# Current implementation phase
CURRENT_PHASE = 3


def pytest_collection_modifyitems(config, items):
    """Skip tests from phases that haven't been implemented yet."""
    for item in items:
        # Extract phase from path (tests/f2/... -> 2)
        for part in item.path.parts:
            if part.startswith("f") and part[1:].isdigit():
                test_phase = int(part[1:])
                if test_phase > CURRENT_PHASE:
                    item.add_marker(
                        pytest.mark.skip(
                            reason=f"Phase F{test_phase} not yet implemented (current: F{CURRENT_PHASE})"
                        )
                    )
                break


JPEG_PAGE = """<html>
<body id="p1">
<img class="page" src="images/img1.jpeg" alt=""/>
<p class="caption">Primera
línea</p>
<b>negrita</b>
</body>
</html>
"""

PNG_PAGE = """<html>
<body id="p2">
<img src="images/img2.png" alt=""/>
<p>texto</p>
</body>
</html>
"""


def make_opf(items: list[tuple[str, str, str]]) -> str:
    """Build a content.opf with (href, id, media_type) items."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<package xmlns="http://www.idpf.org/2007/opf" version="2.0">',
        "<manifest>",
    ]
    for href, item_id, media_type in items:
        lines.append(f'<item href="{href}" id="{item_id}" media-type="{media_type}"/>')
    lines += ["</manifest>", "</package>", ""]
    return "\n".join(lines)


def write_epub(path: Path, entries: dict[str, str | bytes]) -> Path:
    """Write a zip with the given entries (mimetype first, stored)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        if "mimetype" in entries:
            zf.writestr("mimetype", entries["mimetype"], compress_type=zipfile.ZIP_STORED)
        for name, data in entries.items():
            if name == "mimetype":
                continue
            zf.writestr(name, data, compress_type=zipfile.ZIP_DEFLATED)
    return path


def read_epub(path: Path) -> dict[str, bytes]:
    """Read every entry of a zip into a dict."""
    with zipfile.ZipFile(path) as zf:
        return {name: zf.read(name) for name in zf.namelist()}


def mark_encrypted(path: Path) -> Path:
    """Set the encrypted flag bit on every central directory entry."""
    data = bytearray(path.read_bytes())
    end = data.rfind(b"PK\x05\x06")
    count = struct.unpack_from("<H", data, end + 10)[0]
    offset = struct.unpack_from("<I", data, end + 16)[0]
    for _ in range(count):
        data[offset + 8] |= 0x01
        name_len, extra_len, comment_len = struct.unpack_from("<HHH", data, offset + 28)
        offset += 46 + name_len + extra_len + comment_len
    path.write_bytes(bytes(data))
    return path


@pytest.fixture
def volume_entries() -> dict[str, str | bytes]:
    """Volume01: page1 has a JPEG, page2 only a PNG."""
    return {
        "mimetype": "application/epub+zip",
        "META-INF/container.xml": "<container/>",
        "content.opf": make_opf(
            [
                ("page1.html", "chapter_1", "text/html"),
                ("page2.html", "chapter_2", "text/html"),
                ("images/img1.jpeg", "img_1", "image/jpeg"),
                ("images/img2.png", "img_2", "image/png"),
            ]
        ),
        "page1.html": JPEG_PAGE,
        "page2.html": PNG_PAGE,
        "images/img1.jpeg": b"\xff\xd8\xff\xe0fakejpeg",
        "images/img2.png": b"\x89PNGfake",
    }


@pytest.fixture
def workspace(tmp_path) -> dict[str, Path]:
    """Input, extract and output directories for a run."""
    dirs = {
        "input": tmp_path / "input",
        "extract": tmp_path / "extract",
        "output": tmp_path / "output",
    }
    dirs["input"].mkdir()
    return dirs


@pytest.fixture
def volume_epub(workspace, volume_entries) -> Path:
    """Volume01.epub written into the input directory."""
    return write_epub(workspace["input"] / "Volume01.epub", volume_entries)


@pytest.fixture
def epub_writer():
    """Return write_epub for tests that build their own archives."""
    return write_epub


@pytest.fixture
def epub_reader():
    """Return read_epub for inspecting output archives."""
    return read_epub


@pytest.fixture
def opf_builder():
    """Return make_opf for tests that need a custom manifest."""
    return make_opf


@pytest.fixture
def encrypted_marker():
    """Return mark_encrypted for tests that need password-protected entries."""
    return mark_encrypted
