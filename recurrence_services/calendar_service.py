"""
CalendarService -- what the calendar and dashboard collaborators call.

Responsibility:
    Build day-bucket views of a window from stored records and projected
    template occurrences, materialize a period once when the user enters
    it, apply drag/drop moves and total a view for the dashboard.

Architecture position:
    Services -- orchestration over kernel selectors/services, the pure
    engines and the configuration entrypoint.

Invariants enforced:
    - Reads go through selectors; writes go through kernel services or
      MaterializationService.  Flush-only; the caller commits.
    - A dropped virtual entry re-anchors its template; it never creates or
      moves a record.

Failure modes:
    - StoreReadError when a view's records or templates cannot be read.
    - Errors of MaterializationService, TemplateService and RecordService
      propagate unchanged.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recurrence_engines.aggregator import WindowSummary, for_window, resolve_drop, summarize
from recurrence_engines.projector import DEFAULT_HORIZON_MONTHS
from recurrence_kernel.db.engine import create_tables, init_engine_from_url, session_scope
from recurrence_kernel.domain.calendar_date import CalendarDate, MaterializationWindow
from recurrence_kernel.domain.clock import Clock, SystemClock
from recurrence_kernel.domain.dtos import (
    ConcreteRecordInfo,
    DayBucket,
    InstanceRef,
    MaterializationResult,
    ReanchorTemplate,
    RecurrenceTemplateInfo,
    VirtualRef,
    parse_instance_ref,
)
from recurrence_kernel.domain.recurrence import IntervalUnit
from recurrence_kernel.exceptions import StoreReadError
from recurrence_kernel.logging_config import LogContext, configure_logging, get_logger
from recurrence_kernel.selectors.record_selector import RecordSelector
from recurrence_kernel.selectors.template_selector import TemplateSelector
from recurrence_kernel.services.record_service import RecordService
from recurrence_kernel.services.template_service import TemplateService

from recurrence_services.materialization_service import MaterializationService

logger = get_logger("services.calendar")


class CalendarService:
    """
    Calendar orchestration for one session.

    Contract:
        ``view_window`` never writes.  ``enter_period`` and ``move_entry``
        flush their writes into the caller's transaction.
    """

    def __init__(
        self,
        session: Session,
        system_actor_id: UUID,
        clock: Clock | None = None,
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
        default_interval_unit: IntervalUnit = IntervalUnit.WEEKLY,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._system_actor_id = system_actor_id
        self._horizon_months = horizon_months
        self._records = RecordSelector(session)
        self._template_reader = TemplateSelector(session)
        self.templates = TemplateService(
            session,
            clock=self._clock,
            default_interval_unit=default_interval_unit,
        )
        self.records = RecordService(session)
        self.materialization = MaterializationService(
            session,
            system_actor_id,
            record_selector=self._records,
            template_selector=self._template_reader,
        )

    def current_window(self) -> MaterializationWindow:
        """The calendar month containing today."""
        return MaterializationWindow.containing(self._clock.today())

    def view_window(
        self,
        owner_id: UUID,
        window_start: CalendarDate,
        window_end: CalendarDate,
        materialized_period: str | None = None,
    ) -> list[DayBucket]:
        """
        Day buckets of one owner's calendar.

        Raises:
            StoreReadError: If records or templates cannot be read.
        """
        try:
            records = self._records.in_window(owner_id, window_start, window_end)
            templates = self._template_reader.active_for_owner(owner_id)
        except SQLAlchemyError as exc:
            logger.warning(
                "calendar_read_failed",
                extra={"owner_id": str(owner_id)},
                exc_info=True,
            )
            raise StoreReadError("view_window", str(exc)) from exc

        return for_window(
            window_start,
            window_end,
            records,
            templates,
            materialized_period=materialized_period,
            horizon_months=self._horizon_months,
        )

    def enter_period(
        self,
        owner_id: UUID,
        window: MaterializationWindow,
        actor_id: UUID | None = None,
    ) -> MaterializationResult:
        """Materialize the owner's active templates for ``window``."""
        with LogContext.bind(owner_id=str(owner_id), actor_id=actor_id):
            return self.materialization.materialize_for_owner(
                owner_id, window, actor_id=actor_id
            )

    def open_period(
        self,
        owner_id: UUID,
        window: MaterializationWindow | None = None,
        actor_id: UUID | None = None,
    ) -> tuple[MaterializationResult, list[DayBucket]]:
        """
        Enter a period and return its view.

        The period's days show only concrete records afterwards; its
        recurring obligations now exist as rows.
        """
        window = window or self.current_window()
        result = self.enter_period(owner_id, window, actor_id=actor_id)
        buckets = self.view_window(
            owner_id,
            window.period_start,
            window.period_end,
            materialized_period=window.period_key,
        )
        return result, buckets

    def move_entry(
        self,
        ref: InstanceRef | str,
        new_date: CalendarDate,
        current_due_date: CalendarDate | None = None,
        actor_id: UUID | None = None,
    ) -> RecurrenceTemplateInfo | ConcreteRecordInfo:
        """
        Apply a calendar drop.

        Returns:
            The re-anchored template for a virtual entry, the rescheduled
            record for a concrete one.

        Raises:
            InvalidInstanceRefError, TemplateNotFoundError,
            RecordNotFoundError, RecordConflictError.
        """
        actor = actor_id or self._system_actor_id
        parsed = parse_instance_ref(ref)

        template = None
        if isinstance(parsed, VirtualRef):
            template = self.templates.get(parsed.template_id)

        action = resolve_drop(parsed, new_date, current_due_date, template=template)
        if isinstance(action, ReanchorTemplate):
            logger.info(
                "calendar_series_moved",
                extra={"template_id": str(action.template_id), "delta_days": action.delta_days},
            )
            return self.templates.shift_series(action.template_id, action.delta_days, actor)
        return self.records.reschedule(action.record_id, action.new_date, actor)

    def summarize(self, buckets: list[DayBucket]) -> WindowSummary:
        return summarize(buckets)


def build_calendar_service(
    session: Session,
    config_path: Path | str | None = None,
    clock: Clock | None = None,
) -> CalendarService:
    """
    Construct a CalendarService from the active configuration.

    Loads settings via get_active_config() so that horizon, default
    interval and system actor all come from YAML, and configures kernel
    logging at the configured level if nothing configured it yet.
    """
    from recurrence_config import get_active_config

    settings = get_active_config(config_path)
    configure_logging(level=settings.log_level_number)
    return CalendarService(
        session,
        settings.system_actor_id,
        clock=clock,
        horizon_months=settings.projection_horizon_months,
        default_interval_unit=settings.default_interval_unit,
    )


@contextmanager
def open_calendar(
    config_path: Path | str | None = None,
    clock: Clock | None = None,
) -> Iterator[CalendarService]:
    """
    Calendar bound to the configured database, committed on clean exit.

    Points the kernel engine at ``database_url``, creates missing tables
    and runs the block in ``session_scope()``.
    """
    from recurrence_config import get_active_config

    settings = get_active_config(config_path)
    init_engine_from_url(settings.database_url)
    create_tables()
    with session_scope() as session:
        yield build_calendar_service(session, config_path, clock=clock)
