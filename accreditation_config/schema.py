"""
Configuration Schema (``accreditation_config.schema``).

Frozen dataclasses describing the kernel's runtime settings.  Every value
has a default matching ``defaults.yaml`` so a partial YAML file only needs
to name what it overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class TokenSettings:
    """QR token issuance.  TokenIssuer rejects ``num_bytes`` below 16 and ``max_attempts`` below 1."""

    num_bytes: int = 16
    max_attempts: int = 10


@dataclass(frozen=True)
class NumberingSettings:
    prefix: str = "ACC"
    width: int = 4


@dataclass(frozen=True)
class QrSettings:
    base_url: str = "http://localhost:3000"
    image_size: int = 400


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class KernelSettings:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    tokens: TokenSettings = field(default_factory=TokenSettings)
    numbering: NumberingSettings = field(default_factory=NumberingSettings)
    qr: QrSettings = field(default_factory=QrSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""
