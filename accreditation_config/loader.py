"""
Configuration Loader (``accreditation_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen dataclasses of
``accreditation_config.schema``.  Runtime callers go through
``accreditation_config.get_active_settings()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section or key  -> ``KeyError``.
* Wrongly typed value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from accreditation_config.schema import (
    DatabaseSettings,
    KernelSettings,
    LoggingSettings,
    NumberingSettings,
    QrSettings,
    TokenSettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "tokens": TokenSettings,
    "numbering": NumberingSettings,
    "qr": QrSettings,
    "logging": LoggingSettings,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _parse_section(name: str, cls: type, data: dict[str, Any]) -> Any:
    if not isinstance(data, dict):
        raise ValueError(f"Section '{name}' must be a mapping")
    known = {f.name: f for f in fields(cls)}
    unknown = sorted(set(data) - set(known))
    if unknown:
        raise KeyError(f"Unknown key(s) in '{name}': {', '.join(unknown)}")

    defaults = cls()
    values: dict[str, Any] = {}
    for key, raw in data.items():
        expected = type(getattr(defaults, key))
        if expected is int and (isinstance(raw, bool) or not isinstance(raw, int)):
            raise ValueError(f"{name}.{key} must be an integer, got {raw!r}")
        if expected is bool and not isinstance(raw, bool):
            raise ValueError(f"{name}.{key} must be a boolean, got {raw!r}")
        if expected is str and not isinstance(raw, str):
            raise ValueError(f"{name}.{key} must be a string, got {raw!r}")
        values[key] = raw
    return cls(**values)


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of the merged settings mapping."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Section-wise merge; ``override`` wins key by key."""
    merged = {name: dict(section or {}) for name, section in base.items()}
    for name, section in override.items():
        if isinstance(section, dict) and isinstance(merged.get(name), dict):
            merged[name].update(section)
        else:
            merged[name] = section
    return merged


def parse_settings(data: dict[str, Any]) -> KernelSettings:
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise KeyError(f"Unknown settings section(s): {', '.join(unknown)}")
    sections = {
        name: _parse_section(name, cls, data.get(name) or {})
        for name, cls in _SECTIONS.items()
    }
    return KernelSettings(**sections, checksum=compute_checksum(data))
