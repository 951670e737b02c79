"""
EngineSettings schema.

The runtime configuration of the recurrence engine as a frozen dataclass.
YAML documents are parsed into this type by ``recurrence_config.loader``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from recurrence_kernel.domain.recurrence import IntervalUnit

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class EngineSettings:
    """
    Validated engine settings.

    Raises:
        ValueError: on construction with an out-of-range horizon, unknown
            log level or empty database URL.
    """

    database_url: str
    projection_horizon_months: int = 6
    default_interval_unit: IntervalUnit = IntervalUnit.WEEKLY
    log_level: str = "INFO"
    system_actor_id: UUID = UUID("00000000-0000-0000-0000-000000000001")

    def __post_init__(self) -> None:
        if not self.database_url:
            raise ValueError("database_url must not be empty")
        if (
            isinstance(self.projection_horizon_months, bool)
            or not isinstance(self.projection_horizon_months, int)
            or self.projection_horizon_months < 0
        ):
            raise ValueError(
                "projection_horizon_months must be a non-negative integer, "
                f"got {self.projection_horizon_months!r}"
            )
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(f"Unknown log_level {self.log_level!r}")

    @property
    def log_level_number(self) -> int:
        return logging.getLevelName(self.log_level)
