"""
etc_config -- single public entrypoint for runtime settings.

Responsibility:
    ``get_settings()`` is the only way services obtain configuration.  YAML
    loading lives in ``etc_config.loader``; the result is a frozen
    ``Settings`` tree that the service container hands to each component.

Architecture position:
    Sits above ``etc_kernel`` and below ``etc_services``.  The kernel never
    imports from ``etc_config``.
"""

from __future__ import annotations

from pathlib import Path

from etc_config.loader import compute_checksum, load_settings
from etc_config.schema import (
    AcquisitionSettings,
    DatabaseSettings,
    ImportSettings,
    LoggingSettings,
    Settings,
)
from etc_kernel.logging_config import get_logger

logger = get_logger("config")

__all__ = [
    "AcquisitionSettings",
    "DatabaseSettings",
    "ImportSettings",
    "LoggingSettings",
    "Settings",
    "get_settings",
]


def get_settings(path: Path | str | None = None) -> Settings:
    """
    Load settings from ``path``, or return the defaults when no path is given.

    Emits an ``etc_settings_loaded`` log entry carrying the settings checksum.
    """
    settings = load_settings(path) if path is not None else Settings()
    logger.info(
        "etc_settings_loaded",
        extra={
            "source": str(path) if path is not None else "defaults",
            "checksum": compute_checksum(settings),
        },
    )
    return settings
