"""
recurrence_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_config()``.  No other component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``recurrence_kernel`` and below
    ``recurrence_services``.  The kernel and the engines MUST NEVER import
    from ``recurrence_config``; services receive plain values from it.

Failure modes:
    - ``FileNotFoundError`` -- an explicitly requested file does not exist.
    - ``ValueError`` -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``RECURRENCE_CONFIG_TRACE`` log entry naming the sources it merged.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from recurrence_config.loader import (
    DEFAULTS_PATH,
    ENV_CONFIG_PATH,
    env_overrides,
    load_yaml_file,
    merge_settings,
    parse_settings,
)
from recurrence_config.schema import EngineSettings

_logger = logging.getLogger("recurrence_kernel.config")


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineSettings:
    """The ONLY public configuration entrypoint.

    Sources, later ones winning key by key: the packaged ``defaults.yaml``,
    the file at ``path`` (or ``$RECURRENCE_CONFIG``), then the
    ``RECURRENCE_DATABASE_URL`` / ``RECURRENCE_LOG_LEVEL`` variables.

    Args:
        path: Optional YAML override file.
        environ: Environment to read; defaults to ``os.environ``.

    Returns:
        Frozen EngineSettings.
    """
    env = os.environ if environ is None else environ
    sources: list[str] = [str(DEFAULTS_PATH)]
    layers = [load_yaml_file(DEFAULTS_PATH)]

    override_path = path if path is not None else env.get(ENV_CONFIG_PATH)
    if override_path:
        layers.append(load_yaml_file(Path(override_path)))
        sources.append(str(override_path))

    overrides = env_overrides(env)
    if overrides:
        layers.append(overrides)
        sources.append("environment")

    settings = parse_settings(merge_settings(*layers))

    _logger.info(
        "RECURRENCE_CONFIG_TRACE",
        extra={
            "trace_type": "RECURRENCE_CONFIG_TRACE",
            "sources": sources,
            "projection_horizon_months": settings.projection_horizon_months,
            "default_interval_unit": settings.default_interval_unit.value,
        },
    )
    return settings


__all__ = [
    "EngineSettings",
    "get_active_config",
]
