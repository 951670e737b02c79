"""
Configuration Loader (``recurrence_config.loader``).

Responsibility
--------------
Reads YAML settings files and parses them into ``EngineSettings``.  This
is internal tooling; runtime callers use
``recurrence_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a descriptive message; unknown
  keys are rejected rather than ignored.
* Later sources override earlier ones key by key: packaged defaults,
  then an override file, then environment variables.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Top level not a mapping, unknown key, bad value  -> ``ValueError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from recurrence_kernel.domain.recurrence import IntervalUnit

from recurrence_config.schema import EngineSettings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "RECURRENCE_CONFIG"
ENV_OVERRIDES = {
    "RECURRENCE_DATABASE_URL": "database_url",
    "RECURRENCE_LOG_LEVEL": "log_level",
}

_KNOWN_KEYS = frozenset(
    {
        "database_url",
        "projection_horizon_months",
        "default_interval_unit",
        "log_level",
        "system_actor_id",
    }
)


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
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def merge_settings(*sources: Mapping[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for source in sources:
        unknown = set(source) - _KNOWN_KEYS
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        merged.update(source)
    return merged


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Single-key overrides taken from the environment."""
    return {key: environ[var] for var, key in ENV_OVERRIDES.items() if environ.get(var)}


def parse_settings(data: Mapping[str, Any]) -> EngineSettings:
    """
    Build EngineSettings from a merged mapping.

    Raises:
        ValueError: if a value cannot be interpreted.
    """
    if "database_url" not in data:
        raise ValueError("database_url is required")

    unit_value = data.get("default_interval_unit", IntervalUnit.WEEKLY.value)
    unit = IntervalUnit.coerce(unit_value)
    if unit is None:
        raise ValueError(f"Unknown default_interval_unit {unit_value!r}")

    horizon = data.get("projection_horizon_months", 6)
    if isinstance(horizon, str) and horizon.strip().isdigit():
        horizon = int(horizon)

    try:
        actor = UUID(str(data.get("system_actor_id", "00000000-0000-0000-0000-000000000001")))
    except ValueError as e:
        raise ValueError(f"system_actor_id is not a UUID: {data.get('system_actor_id')!r}") from e

    return EngineSettings(
        database_url=str(data["database_url"]),
        projection_horizon_months=horizon,
        default_interval_unit=unit,
        log_level=str(data.get("log_level", "INFO")).upper(),
        system_actor_id=actor,
    )
