"""Application configuration loader.

Loads the pipeline paths and worker settings from a YAML file, then applies
environment overrides. CLI options are applied on top by the caller through
PruneConfig.with_overrides().

Precedence: CLI > environment > YAML file > defaults.

Usage:
    from epubprune.config.app_config import load_app_config

    config = load_app_config()
    config = config.with_overrides(input_dir=Path("books"))
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import structlog
import yaml

from epubprune.core.errors import ConfigError
from epubprune.core.page_filter import KeyMode
from epubprune.utils.validators import archive_stem

logger = structlog.get_logger(__name__)

# Config file path (relative to working directory)
CONFIG_FILE = Path("config/epubprune.yaml")
CONFIG_ENV = "EPUBPRUNE_CONFIG"

ENV_INPUT_DIR = "EPUBPRUNE_INPUT_DIR"
ENV_EXTRACT_DIR = "EPUBPRUNE_EXTRACT_DIR"
ENV_OUTPUT_DIR = "EPUBPRUNE_OUTPUT_DIR"
ENV_WORKERS = "EPUBPRUNE_WORKERS"
ENV_KEY_MODE = "EPUBPRUNE_KEY_MODE"

OUTPUT_SUFFIX = "_processed.epub"


def _default_workers() -> int:
    return min(4, os.cpu_count() or 1)


@dataclass(frozen=True)
class PruneConfig:
    """Settings for a pruning run."""

    input_dir: Path | None = None
    extract_dir: Path = Path("data/extract")
    output_dir: Path = Path("data/output")
    workers: int = field(default_factory=_default_workers)
    key_mode: KeyMode = KeyMode.FILENAME

    def scratch_dir_for(self, source: Path) -> Path:
        """Scratch directory for one archive, named after its base name."""
        return self.extract_dir / archive_stem(source)

    def output_path_for(self, source: Path) -> Path:
        """Output archive path: <stem>_processed.epub in output_dir."""
        return self.output_dir / f"{archive_stem(source)}{OUTPUT_SUFFIX}"

    def with_overrides(self, **overrides: Any) -> PruneConfig:
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "workers" in values:
            values["workers"] = _parse_workers(values["workers"])
        if "key_mode" in values:
            values["key_mode"] = _parse_key_mode(values["key_mode"])
        for key in ("input_dir", "extract_dir", "output_dir"):
            if key in values:
                values[key] = Path(values[key]).expanduser()
        return replace(self, **values)


# Module-level cache
_cached_config: PruneConfig | None = None


def _get_defaults() -> dict[str, Any]:
    """Get default configuration values."""
    return {
        "paths": {
            "input_dir": None,
            "extract_dir": "data/extract",
            "output_dir": "data/output",
        },
        "workers": _default_workers(),
        "key_mode": KeyMode.FILENAME.value,
    }


def _parse_workers(value: Any) -> int:
    try:
        workers = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"workers debe ser un entero: {value!r}") from e
    if workers < 1:
        raise ConfigError(f"workers debe ser >= 1: {workers}")
    return workers


def _parse_key_mode(value: Any) -> KeyMode:
    if isinstance(value, KeyMode):
        return value
    try:
        return KeyMode(str(value).lower())
    except ValueError as e:
        valid = ", ".join(m.value for m in KeyMode)
        raise ConfigError(f"key_mode inválido: {value!r} (opciones: {valid})") from e


def _merge_env(data: dict[str, Any], environ: dict[str, str]) -> dict[str, Any]:
    """Apply EPUBPRUNE_* environment variables over file/default values."""
    paths = data["paths"]
    if environ.get(ENV_INPUT_DIR):
        paths["input_dir"] = environ[ENV_INPUT_DIR]
    if environ.get(ENV_EXTRACT_DIR):
        paths["extract_dir"] = environ[ENV_EXTRACT_DIR]
    if environ.get(ENV_OUTPUT_DIR):
        paths["output_dir"] = environ[ENV_OUTPUT_DIR]
    if environ.get(ENV_WORKERS):
        data["workers"] = environ[ENV_WORKERS]
    if environ.get(ENV_KEY_MODE):
        data["key_mode"] = environ[ENV_KEY_MODE]
    return data


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML inválido en {path}: {e}") from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"El archivo de configuración debe ser un mapa: {path}")
    return loaded


def _parse_config(data: dict[str, Any]) -> PruneConfig:
    """Parse configuration dictionary into PruneConfig object."""
    paths = data.get("paths", {})
    input_dir = paths.get("input_dir")

    return PruneConfig(
        input_dir=Path(input_dir).expanduser() if input_dir else None,
        extract_dir=Path(paths.get("extract_dir", "data/extract")).expanduser(),
        output_dir=Path(paths.get("output_dir", "data/output")).expanduser(),
        workers=_parse_workers(data.get("workers", _default_workers())),
        key_mode=_parse_key_mode(data.get("key_mode", KeyMode.FILENAME.value)),
    )


def _resolve_config_file(config_file: Path | None, environ: dict[str, str]) -> Path | None:
    if config_file is not None:
        if not config_file.exists():
            raise ConfigError(f"Archivo de configuración no encontrado: {config_file}")
        return config_file
    if environ.get(CONFIG_ENV):
        path = Path(environ[CONFIG_ENV])
        if not path.exists():
            raise ConfigError(f"Archivo de configuración no encontrado: {path}")
        return path
    if CONFIG_FILE.exists():
        return CONFIG_FILE
    return None


def load_app_config(
    config_file: Path | None = None,
    force_reload: bool = False,
    environ: dict[str, str] | None = None,
) -> PruneConfig:
    """Load configuration from YAML and environment.

    Args:
        config_file: Explicit YAML file (overrides EPUBPRUNE_CONFIG and default)
        force_reload: If True, ignore cached config and reload.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        PruneConfig with file and environment values applied.

    Raises:
        ConfigError: If the file is missing/malformed or a value is invalid
    """
    global _cached_config

    use_cache = config_file is None and environ is None
    if _cached_config is not None and use_cache and not force_reload:
        return _cached_config

    env = dict(os.environ) if environ is None else environ
    data = _get_defaults()

    source = _resolve_config_file(config_file, env)
    if source is not None:
        logger.debug("loading_app_config", source=str(source))
        loaded = _read_yaml(source)
        data["paths"].update(loaded.get("paths") or {})
        for key in ("workers", "key_mode"):
            if key in loaded:
                data[key] = loaded[key]
    else:
        logger.debug("using_default_config")

    config = _parse_config(_merge_env(data, env))
    _cached_config = config
    return config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
