"""
TemplateService -- lifecycle of recurring task and transaction definitions.

Responsibility:
    Creates templates (with their seed record), consumes occurrences,
    deactivates finished series and re-anchors a series when the user
    drags one of its projected occurrences to another day.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - series_key is generated here, once, as an opaque random token and is
      never derived from description or other display text.
    - completed_occurrences never exceeds max_occurrences; consuming the
      last occurrence deactivates the template.
    - Templates are deactivated, never deleted.

Failure modes:
    - InvalidTemplateError on malformed create input.
    - TemplateNotFoundError for unknown template ids.
    - TemplateExhaustedError when consuming from an inactive or exhausted
      template.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from recurrence_kernel.domain.calendar_date import CalendarDate
from recurrence_kernel.domain.clock import Clock, SystemClock
from recurrence_kernel.domain.dtos import RecurrenceTemplateInfo
from recurrence_kernel.domain.recurrence import IntervalUnit, TemplateKind
from recurrence_kernel.exceptions import (
    InvalidTemplateError,
    TemplateExhaustedError,
    TemplateNotFoundError,
)
from recurrence_kernel.logging_config import get_logger
from recurrence_kernel.models.concrete_record import ConcreteRecord
from recurrence_kernel.models.recurrence_template import RecurrenceTemplate
from recurrence_kernel.selectors.template_selector import template_to_dto
from recurrence_kernel.services.base import BaseService

logger = get_logger("services.template")


def new_series_key() -> str:
    """Opaque, template-owned series identity."""
    return uuid4().hex


class TemplateService(BaseService[RecurrenceTemplate]):
    """
    Service for recurrence template writes.

    Contract:
        All public methods return RecurrenceTemplateInfo DTOs, never ORM
        rows.  Changes are flushed, not committed.

    Guarantees:
        - create_template writes the template and (by default) its seed
          ConcreteRecord at the anchor date in one flush.
        - The seed carries the template's series_key, so a later
          materialization of the anchor period is a no-op.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        default_interval_unit: IntervalUnit = IntervalUnit.WEEKLY,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._default_interval_unit = default_interval_unit

    def _get_by_id(self, template_id: UUID) -> RecurrenceTemplate:
        template = self.session.get(RecurrenceTemplate, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    def get(self, template_id: UUID) -> RecurrenceTemplateInfo:
        """
        Get a template by ID.

        Raises:
            TemplateNotFoundError: If the template doesn't exist.
        """
        return template_to_dto(self._get_by_id(template_id))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _resolve_interval(
        self,
        kind: TemplateKind,
        interval_unit: IntervalUnit | str | None,
    ) -> IntervalUnit:
        if interval_unit is None:
            # Recurring transactions repeat on a day of the month
            if kind is TemplateKind.TRANSACTION:
                return IntervalUnit.MONTHLY
            return self._default_interval_unit
        unit = IntervalUnit.coerce(interval_unit)
        if unit is None:
            raise InvalidTemplateError(
                "interval_unit", interval_unit, "unknown interval unit"
            )
        return unit

    def create_template(
        self,
        owner_id: UUID,
        kind: TemplateKind | str,
        description: str,
        actor_id: UUID,
        anchor_date: CalendarDate | None = None,
        interval_unit: IntervalUnit | str | None = None,
        max_occurrences: int | None = None,
        day_of_month: int | None = None,
        counterparty: str | None = None,
        category: str | None = None,
        payment_method: str | None = None,
        amount: Decimal | str | None = None,
        create_seed: bool = True,
    ) -> RecurrenceTemplateInfo:
        """
        Create a recurring template.

        Args:
            owner_id: Owning user or project.
            kind: ``task`` or ``transaction``.
            description: Display text; part of the natural key.
            actor_id: Who is creating the template (audit column).
            anchor_date: First occurrence; defaults to today.
            interval_unit: Step between occurrences.  Defaults to monthly for
                transactions and the configured unit for tasks.
            max_occurrences: Number of occurrences after the anchor; None
                for an unbounded series.
            day_of_month: Nominal day (1..31) for monthly materialization.
            counterparty, category, payment_method: Natural-key fields.
            amount: Transaction amount.
            create_seed: Also write the anchor occurrence as a concrete record.

        Returns:
            The created RecurrenceTemplateInfo.

        Raises:
            InvalidTemplateError: If any input fails validation.
        """
        try:
            kind = TemplateKind(kind)
        except ValueError as e:
            raise InvalidTemplateError("kind", kind, "must be task or transaction") from e

        if not description or not description.strip():
            raise InvalidTemplateError("description", description, "must not be empty")

        if max_occurrences is not None and (
            isinstance(max_occurrences, bool)
            or not isinstance(max_occurrences, int)
            or max_occurrences < 1
        ):
            raise InvalidTemplateError(
                "max_occurrences", max_occurrences, "must be a positive integer or None"
            )

        if day_of_month is not None and (
            isinstance(day_of_month, bool)
            or not isinstance(day_of_month, int)
            or not 1 <= day_of_month <= 31
        ):
            raise InvalidTemplateError("day_of_month", day_of_month, "must be 1..31")

        if amount is not None:
            try:
                amount = Decimal(str(amount))
            except InvalidOperation as e:
                raise InvalidTemplateError("amount", amount, "not a decimal") from e

        unit = self._resolve_interval(kind, interval_unit)
        anchor = anchor_date or self._clock.today()
        series_key = new_series_key()

        template = RecurrenceTemplate(
            owner_id=owner_id,
            kind=kind.value,
            description=description.strip(),
            anchor_date=anchor.to_date(),
            interval_unit=unit.value,
            day_of_month=day_of_month,
            max_occurrences=max_occurrences,
            completed_occurrences=0,
            counterparty=counterparty,
            category=category,
            payment_method=payment_method,
            amount=amount,
            series_key=series_key,
            active=True,
            created_by_id=actor_id,
        )
        self.session.add(template)
        self.session.flush()

        if create_seed:
            self.session.add(
                ConcreteRecord(
                    owner_id=owner_id,
                    kind=kind.value,
                    record_date=anchor.to_date(),
                    period_key=anchor.period_key,
                    description=template.description,
                    counterparty=counterparty,
                    category=category,
                    payment_method=payment_method,
                    amount=amount,
                    settled=False,
                    recurring=True,
                    template_id=template.id,
                    series_key=series_key,
                    created_by_id=actor_id,
                )
            )
            self.session.flush()

        logger.info(
            "template_created",
            extra={
                "template_id": str(template.id),
                "owner_id": str(owner_id),
                "kind": kind.value,
                "interval_unit": unit.value,
                "anchor_date": str(anchor),
                "max_occurrences": max_occurrences,
                "seeded": create_seed,
            },
        )
        return template_to_dto(template)

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def consume_occurrence(
        self,
        template_id: UUID,
        actor_id: UUID,
    ) -> RecurrenceTemplateInfo:
        """
        Mark one more occurrence of the series as done.

        Reaching max_occurrences deactivates the template.  Unbounded
        templates only count.

        Raises:
            TemplateNotFoundError: Unknown template.
            TemplateExhaustedError: Template inactive or quota used up.
        """
        template = self._get_by_id(template_id)
        completed = template.completed_occurrences or 0
        maximum = template.max_occurrences

        if not template.active or (maximum is not None and completed >= maximum):
            raise TemplateExhaustedError(template_id, completed, maximum)

        template.completed_occurrences = completed + 1
        self._stamp(template, actor_id)
        if maximum is not None and template.completed_occurrences >= maximum:
            template.active = False
        self.session.flush()

        logger.info(
            "template_occurrence_consumed",
            extra={
                "template_id": str(template_id),
                "completed_occurrences": template.completed_occurrences,
                "max_occurrences": maximum,
                "deactivated": not template.active,
            },
        )
        return template_to_dto(template)

    def deactivate(self, template_id: UUID, actor_id: UUID) -> RecurrenceTemplateInfo:
        """Stop a series.  Idempotent."""
        template = self._get_by_id(template_id)
        if template.active:
            template.active = False
            self._stamp(template, actor_id)
            self.session.flush()
            logger.info("template_deactivated", extra={"template_id": str(template_id)})
        return template_to_dto(template)

    # ------------------------------------------------------------------
    # Re-anchoring
    # ------------------------------------------------------------------

    def reanchor(
        self,
        template_id: UUID,
        new_anchor: CalendarDate,
        actor_id: UUID,
        day_of_month: int | None = None,
    ) -> RecurrenceTemplateInfo:
        """
        Move the series anchor.

        Monthly templates with an explicit day_of_month take
        ``day_of_month`` when given, else the new anchor's day.
        """
        template = self._get_by_id(template_id)
        previous = template.anchor_date
        template.anchor_date = new_anchor.to_date()
        if (
            template.day_of_month is not None
            and IntervalUnit.coerce(template.interval_unit) is IntervalUnit.MONTHLY
        ):
            template.day_of_month = day_of_month or new_anchor.day
        self._stamp(template, actor_id)
        self.session.flush()

        logger.info(
            "template_reanchored",
            extra={
                "template_id": str(template_id),
                "previous_anchor": str(previous) if previous else None,
                "new_anchor": str(new_anchor),
            },
        )
        return template_to_dto(template)

    def shift_series(
        self,
        template_id: UUID,
        delta_days: int,
        actor_id: UUID,
    ) -> RecurrenceTemplateInfo:
        """
        Shift every future occurrence by ``delta_days``.

        Raises:
            InvalidTemplateError: If the template has no anchor to shift.
        """
        template = self._get_by_id(template_id)
        if template.anchor_date is None:
            raise InvalidTemplateError("anchor_date", None, "template has no anchor to shift")
        anchor = CalendarDate.from_date(template.anchor_date)
        day = None
        if template.day_of_month is not None:
            # The recurring day moves with the series, not with the anchor
            nominal = CalendarDate.clamped(anchor.year, anchor.month, template.day_of_month)
            day = nominal.plus_days(delta_days).day
        return self.reanchor(
            template_id, anchor.plus_days(delta_days), actor_id, day_of_month=day
        )
