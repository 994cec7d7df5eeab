"""Archive I/O for the pruning pipeline.

Responsibilities:
- Unpack an EPUB (zip) into a scratch directory, rejecting unsafe member paths
- Repack a scratch directory into a new EPUB without overwriting anything
- Remove the scratch directory after a successful repack

The repacked archive writes `mimetype` first and uncompressed when present,
which is what EPUB readers expect of a container.
"""

from __future__ import annotations

import shutil
import zipfile
from pathlib import Path

import structlog

from epubprune.core.errors import (
    ArchiveReadError,
    ArchiveWriteError,
    OutputExistsError,
    UnsafeArchiveEntryError,
)
from epubprune.utils.validators import UnsafePathError, resolve_member_path

logger = structlog.get_logger(__name__)

MIMETYPE_ENTRY = "mimetype"
COPY_BUFFER_SIZE = 64 * 1024


def unpack_archive(source: Path, dest: Path) -> list[Path]:
    """Extract every member of an archive into dest.

    Args:
        source: Path to the EPUB/zip file
        dest: Extraction directory (created if absent)

    Returns:
        List of extracted file paths, in archive order

    Raises:
        ArchiveReadError: If source is not a readable zip or an entry
            cannot be decompressed
        UnsafeArchiveEntryError: If a member would land outside dest
    """
    dest.mkdir(parents=True, exist_ok=True)
    extracted: list[Path] = []

    try:
        zf = zipfile.ZipFile(source)
    except zipfile.BadZipFile as e:
        raise ArchiveReadError(source, str(e)) from e
    except FileNotFoundError as e:
        raise ArchiveReadError(source, "archivo no encontrado") from e

    try:
        with zf:
            for info in zf.infolist():
                try:
                    target = resolve_member_path(dest, info.filename)
                except UnsafePathError as e:
                    raise UnsafeArchiveEntryError(source, e.member) from e

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, open(target, "wb") as out:
                    shutil.copyfileobj(src, out, COPY_BUFFER_SIZE)
                extracted.append(target)
    except zipfile.BadZipFile as e:
        raise ArchiveReadError(source, str(e)) from e
    except (RuntimeError, NotImplementedError, EOFError) as e:
        # Encrypted entries, unsupported compression, truncated streams
        raise ArchiveReadError(source, str(e)) from e

    logger.debug("archive.unpacked", archive=source.name, files=len(extracted))
    return extracted


def _iter_files(source_dir: Path) -> list[Path]:
    """List regular files under source_dir in a stable order."""
    return sorted(p for p in source_dir.rglob("*") if p.is_file())


def repack_archive(source_dir: Path, dest: Path) -> int:
    """Zip every regular file under source_dir into a new archive.

    Entries are named by their POSIX path relative to source_dir. No
    directory entries are written.

    Args:
        source_dir: Scratch tree to package
        dest: Output archive path (must not exist)

    Returns:
        Number of entries written

    Raises:
        OutputExistsError: If dest already exists (left untouched)
        ArchiveWriteError: If the archive cannot be written
    """
    if dest.exists():
        raise OutputExistsError(dest)

    dest.parent.mkdir(parents=True, exist_ok=True)

    try:
        handle = open(dest, "xb")
    except FileExistsError as e:
        raise OutputExistsError(dest) from e
    except OSError as e:
        raise ArchiveWriteError(dest, str(e)) from e

    files = _iter_files(source_dir)
    mimetype_path = source_dir / MIMETYPE_ENTRY
    count = 0

    try:
        with handle, zipfile.ZipFile(handle, "w") as zf:
            if mimetype_path.is_file():
                zf.write(mimetype_path, MIMETYPE_ENTRY, compress_type=zipfile.ZIP_STORED)
                count += 1
            for path in files:
                if path == mimetype_path:
                    continue
                arcname = path.relative_to(source_dir).as_posix()
                zf.write(path, arcname, compress_type=zipfile.ZIP_DEFLATED)
                count += 1
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise ArchiveWriteError(dest, str(e)) from e

    logger.debug("archive.repacked", output=str(dest), entries=count)
    return count


def clean_scratch(path: Path) -> None:
    """Delete a scratch tree, files first then directories bottom-up."""
    if not path.exists():
        return
    shutil.rmtree(path)
    logger.debug("archive.scratch_removed", path=str(path))
