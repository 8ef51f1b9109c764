"""
accreditation_config -- single public entrypoint for kernel settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads configuration
    files or environment variables directly.

Invariants enforced:
    - Packaged ``defaults.yaml`` is always loaded first; an explicit file is
      merged over it section by section.
    - ``ACCREDITATION_DATABASE_URL`` overrides ``database.url`` and is read
      nowhere else.

Failure modes:
    - ``FileNotFoundError`` -- explicit config path does not exist.
    - ``KeyError`` / ``ValueError`` -- unknown keys or mistyped values.

Audit relevance:
    Every call emits an ``accreditation_config_loaded`` log entry carrying the
    settings checksum.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from accreditation_config.loader import load_yaml_file, merge, parse_settings
from accreditation_config.schema import (
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    NumberingSettings,
    QrSettings,
    TokenSettings,
)

_logger = logging.getLogger("accreditation_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"
DATABASE_URL_ENV = "ACCREDITATION_DATABASE_URL"


def get_active_settings(config_path: Path | str | None = None) -> KernelSettings:
    """The ONLY public settings entrypoint."""
    data = load_yaml_file(DEFAULTS_PATH)
    if config_path is not None:
        data = merge(data, load_yaml_file(Path(config_path)))

    env_url = os.environ.get(DATABASE_URL_ENV)
    if env_url:
        data = merge(data, {"database": {"url": env_url}})

    settings = parse_settings(data)
    _logger.info(
        "accreditation_config_loaded",
        extra={
            "config_path": str(config_path) if config_path else None,
            "checksum": settings.checksum,
            "database_url_from_env": bool(env_url),
        },
    )
    return settings


__all__ = [
    "get_active_settings",
    "KernelSettings",
    "DatabaseSettings",
    "TokenSettings",
    "NumberingSettings",
    "QrSettings",
    "LoggingSettings",
]
