"""Exception hierarchy for the pruning pipeline.

Every failure a single archive can hit derives from PruneError so the batch
driver can catch it at the task boundary without swallowing programming errors.
"""

from __future__ import annotations

from pathlib import Path


class PruneError(Exception):
    """Base exception for epubprune errors."""

    pass


class ArchiveReadError(PruneError):
    """Raised when an archive is not a valid zip or cannot be read."""

    def __init__(self, file_path: Path, detail: str = ""):
        self.file_path = file_path
        msg = f"EPUB inválido o ilegible: {file_path.name}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class UnsafeArchiveEntryError(ArchiveReadError):
    """Raised when an archive member would extract outside the destination."""

    def __init__(self, file_path: Path, member: str):
        self.member = member
        super().__init__(file_path, f"entrada fuera del destino: {member}")


class ArchiveWriteError(PruneError):
    """Raised when the output archive cannot be written."""

    def __init__(self, file_path: Path, detail: str = ""):
        self.file_path = file_path
        msg = f"No se pudo escribir el EPUB: {file_path}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class OutputExistsError(ArchiveWriteError):
    """Raised when the destination archive already exists."""

    def __init__(self, file_path: Path):
        super().__init__(file_path, "el archivo de salida ya existe")


class ManifestNotFoundError(PruneError):
    """Raised when no content.opf exists under the unpacked tree."""

    def __init__(self, root: Path):
        self.root = root
        super().__init__(f"content.opf no encontrado en: {root}")


class InputDirectoryError(PruneError):
    """Raised when the input directory is missing or not a directory."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Directorio de entrada no encontrado: {path}")


class ConfigError(PruneError):
    """Raised when configuration values are invalid."""

    pass


class PipelineError(PruneError):
    """Raised when one step of an archive's pipeline fails.

    Carries the source archive and the failing step so the batch summary can
    report where each archive stopped.
    """

    def __init__(self, source: Path, step: str, cause: BaseException):
        self.source = source
        self.step = step
        self.cause = cause
        super().__init__(f"{source.name}: fallo en '{step}': {cause}")
