"""
Module: recurrence_engines
Responsibility:
    Package entrypoint re-exporting the pure recurrence engines: the
    instance projector, the materialization planner and the calendar
    aggregator.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recurrence_kernel.domain, recurrence_kernel.logging_config
    and sibling engine modules.  MUST NOT import recurrence_services or
    recurrence_config.

Invariants enforced:
    - Purity: engines never read the clock; "today" and windows are passed
      in by the caller.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine invocation is traced via the ``@traced_engine`` decorator
    (see ``recurrence_engines.tracer``), emitting RECURRENCE_ENGINE_TRACE
    log records with engine name, version, input fingerprint and duration.
"""

from recurrence_engines.aggregator import (
    WindowSummary,
    for_window,
    resolve_drop,
    summarize,
)
from recurrence_engines.materialization import (
    ExistingKeys,
    MaterializationPlan,
    is_eligible,
    plan_materialization,
    target_date,
)
from recurrence_engines.projector import DEFAULT_HORIZON_MONTHS, project
from recurrence_engines.tracer import traced_engine

__all__ = [
    "DEFAULT_HORIZON_MONTHS",
    "ExistingKeys",
    "MaterializationPlan",
    "WindowSummary",
    "for_window",
    "is_eligible",
    "plan_materialization",
    "project",
    "resolve_drop",
    "summarize",
    "target_date",
    "traced_engine",
]
