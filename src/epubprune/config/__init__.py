"""Configuration package for epubprune."""

from epubprune.config.app_config import (
    PruneConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "PruneConfig",
    "clear_config_cache",
    "load_app_config",
]
