"""Path validation helpers.

Functions:
- resolve_member_path(dest, member) -> Path: Safe extraction target for a zip member
- archive_stem(path) -> str: Base name used for scratch and output naming
- split_duplicate_stems(paths) -> (unique, duplicates): Indexes of colliding stems
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath


class UnsafePathError(ValueError):
    """Raised when a member name escapes its destination directory."""

    def __init__(self, member: str):
        self.member = member
        super().__init__(f"Ruta insegura en el archivo: '{member}'")


def resolve_member_path(dest: Path, member: str) -> Path:
    """Resolve a zip member name to a path inside dest.

    Args:
        dest: Extraction root
        member: Member name as stored in the archive (forward slashes)

    Returns:
        Absolute target path under dest

    Raises:
        UnsafePathError: If the member is absolute or climbs out of dest
    """
    normalized = member.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or (pure.parts and pure.parts[0].endswith(":")):
        raise UnsafePathError(member)

    root = dest.resolve()
    target = root.joinpath(*pure.parts).resolve()
    if target != root and root not in target.parents:
        raise UnsafePathError(member)
    return target


def archive_stem(path: Path) -> str:
    """Return the archive name without its last extension.

    Examples:
        "Volume01.epub" -> "Volume01"
        "vol.1.epub" -> "vol.1"
    """
    return path.stem


def split_duplicate_stems(paths: list[Path]) -> tuple[list[int], list[int]]:
    """Partition positions in paths so every stem appears at most once.

    The first path with a given stem is kept; later ones (including repeats of
    the very same path) are duplicates since they would share a scratch
    directory and output file.

    Args:
        paths: Candidate archive paths, in processing order

    Returns:
        Tuple of (unique_indexes, duplicate_indexes) into paths
    """
    seen: set[str] = set()
    unique: list[int] = []
    duplicates: list[int] = []
    for index, path in enumerate(paths):
        stem = archive_stem(path)
        if stem in seen:
            duplicates.append(index)
        else:
            seen.add(stem)
            unique.append(index)
    return unique, duplicates
