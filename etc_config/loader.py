"""
Settings Loader (``etc_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the frozen
``etc_config.schema.Settings`` tree.  Runtime callers go through
``etc_config.get_settings()``.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError``; a typo never silently
  falls back to a default.
* Values are coerced to the declared field type, and numeric limits are
  range-checked (batch size 1..10000, page size 1..1000).
* ``compute_checksum`` produces a deterministic SHA-256 identity for a
  settings object.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad value  -> ``ValueError`` naming the section and key.
"""

from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

from etc_config.schema import (
    AcquisitionSettings,
    DatabaseSettings,
    ImportSettings,
    LoggingSettings,
    Settings,
)
from etc_kernel.utils.hashing import hash_payload

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "imports": ImportSettings,
    "acquisition": AcquisitionSettings,
    "logging": LoggingSettings,
}

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return data


def _coerce(section: str, key: str, value: Any, default: Any) -> Any:
    try:
        if isinstance(default, bool):
            if isinstance(value, bool):
                return value
            raise ValueError("expected a boolean")
        if isinstance(default, int):
            if isinstance(value, bool):
                raise ValueError("expected an integer")
            return int(value)
        if isinstance(default, float):
            return float(value)
        return str(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{section}.{key}: {exc}") from exc


def _parse_section(name: str, data: Any) -> Any:
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"{name}: section must be a mapping")

    defaults = cls()
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"{name}: unknown keys {sorted(unknown)}")

    kwargs = {
        key: _coerce(name, key, value, getattr(defaults, key))
        for key, value in data.items()
    }
    return cls(**kwargs)


def _check_limits(settings: Settings) -> None:
    imports = settings.imports
    if not 1 <= imports.max_batch_size <= 10000:
        raise ValueError("imports.max_batch_size must be between 1 and 10000")
    if not 1 <= imports.default_batch_size <= imports.max_batch_size:
        raise ValueError("imports.default_batch_size must be between 1 and max_batch_size")
    if not 1 <= imports.max_page_size <= 1000:
        raise ValueError("imports.max_page_size must be between 1 and 1000")
    if not 1 <= imports.default_page_size <= imports.max_page_size:
        raise ValueError("imports.default_page_size must be between 1 and max_page_size")

    acq = settings.acquisition
    if acq.pacing_delay_seconds < 0:
        raise ValueError("acquisition.pacing_delay_seconds must not be negative")
    if acq.retry_attempts < 1:
        raise ValueError("acquisition.retry_attempts must be at least 1")
    if acq.retry_base_delay_seconds < 0:
        raise ValueError("acquisition.retry_base_delay_seconds must not be negative")
    if acq.job_retention_seconds < 0:
        raise ValueError("acquisition.job_retention_seconds must not be negative")
    if acq.default_account_type not in ("corporate", "personal"):
        raise ValueError("acquisition.default_account_type must be corporate or personal")

    if settings.logging.level.upper() not in _LOG_LEVELS:
        raise ValueError(f"logging.level: unknown level {settings.logging.level!r}")


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Parse a plain dict (as loaded from YAML) into ``Settings``."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"unknown settings sections: {sorted(unknown)}")

    settings = Settings(
        **{name: _parse_section(name, data.get(name)) for name in _SECTIONS}
    )
    _check_limits(settings)
    return settings


def load_settings(path: Path | str) -> Settings:
    return settings_from_dict(load_yaml_file(Path(path)))


def compute_checksum(settings: Settings) -> str:
    """SHA-256 of the canonical JSON form of ``settings``."""
    return hash_payload(dataclasses.asdict(settings))
