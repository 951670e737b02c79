"""
Tests for the pure materialization planner.

These tests verify:
- Target-day clamping for short months
- Participation rules (eligibility)
- Natural-key and series-key dedup, including within one batch
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from recurrence_engines.materialization import (
    ExistingKeys,
    is_eligible,
    plan_materialization,
    target_date,
)
from recurrence_kernel.domain.calendar_date import CalendarDate, MaterializationWindow
from recurrence_kernel.domain.dtos import ConcreteRecordInfo
from recurrence_kernel.domain.recurrence import IntervalUnit, NaturalKey, TemplateKind

MARCH_2025 = MaterializationWindow.for_month(2025, 3)


@pytest.fixture
def bill(template_factory):
    """Monthly bill factory anchored on Jan 31 2025."""

    def _bill(**overrides):
        values = dict(
            kind=TemplateKind.TRANSACTION,
            description="Rent",
            counterparty="Landlord",
            category="Housing",
            payment_method="pix",
            amount=Decimal("-1500.00"),
            anchor_date=CalendarDate(2025, 1, 31),
            interval_unit=IntervalUnit.MONTHLY,
            day_of_month=31,
        )
        values.update(overrides)
        return template_factory(**values)

    return _bill


def _record_like(template, period: MaterializationWindow, **overrides) -> ConcreteRecordInfo:
    values = dict(
        id=uuid4(),
        owner_id=template.owner_id,
        kind=template.kind,
        record_date=period.period_start,
        period_key=period.period_key,
        description=template.description,
        counterparty=template.counterparty,
        category=template.category,
        payment_method=template.payment_method,
        amount=template.amount,
    )
    values.update(overrides)
    return ConcreteRecordInfo(**values)


class TestTargetDate:
    """Nominal day clamped to the period."""

    @pytest.mark.parametrize(
        "year, month, expected",
        [
            (2025, 2, CalendarDate(2025, 2, 28)),
            (2024, 2, CalendarDate(2024, 2, 29)),
            (2025, 4, CalendarDate(2025, 4, 30)),
            (2025, 3, CalendarDate(2025, 3, 31)),
        ],
    )
    def test_day_31_clamps(self, bill, year, month, expected):
        """Day 31 lands on the last day of shorter months."""
        window = MaterializationWindow.for_month(year, month)
        assert target_date(bill(), window) == expected

    def test_anchor_day_used_without_explicit_day(self, bill):
        template = bill(day_of_month=None, anchor_date=CalendarDate(2025, 1, 15))
        assert target_date(template, MARCH_2025) == CalendarDate(2025, 3, 15)

    def test_out_of_range_day_has_no_target(self, bill):
        assert target_date(bill(day_of_month=42), MARCH_2025) is None


class TestEligibility:
    """Which templates participate in a period."""

    def test_active_monthly_bill_participates(self, bill):
        assert is_eligible(bill(), MARCH_2025)

    def test_inactive_does_not_participate(self, bill):
        assert not is_eligible(bill(active=False), MARCH_2025)

    def test_weekly_task_without_day_of_month_does_not_participate(self, template_factory):
        assert not is_eligible(template_factory(), MARCH_2025)

    def test_period_before_anchor_does_not_participate(self, bill):
        assert not is_eligible(bill(anchor_date=CalendarDate(2025, 5, 31)), MARCH_2025)

    def test_exhausted_does_not_participate(self, bill):
        assert not is_eligible(bill(max_occurrences=3, completed_occurrences=3), MARCH_2025)

    def test_bounded_series_ends_after_last_installment(self, bill):
        """Three installments after a January anchor run through April."""
        template = bill(max_occurrences=3)
        assert is_eligible(template, MaterializationWindow.for_month(2025, 4))
        assert not is_eligible(template, MaterializationWindow.for_month(2025, 5))

    def test_missing_anchor_does_not_participate(self, bill):
        assert not is_eligible(bill(anchor_date=None), MARCH_2025)


class TestPlanning:
    """Plan construction and dedup."""

    def test_plans_one_record_per_template(self, bill):
        rent = bill()
        gym = bill(description="Gym", counterparty="Gym Co", amount=Decimal("-90"), day_of_month=5)

        plan = plan_materialization([rent, gym], MARCH_2025, ExistingKeys())

        assert [p.template_id for p in plan.to_create] == [rent.id, gym.id]
        assert [str(p.record_date) for p in plan.to_create] == ["2025-03-31", "2025-03-05"]
        assert plan.to_create[0].series_key == rent.series_key
        assert plan.period_key == "2025-03"

    def test_existing_natural_key_skips(self, bill):
        """A March record with the template's natural key blocks creation."""
        rent = bill()
        existing = ExistingKeys.from_records([_record_like(rent, MARCH_2025, series_key=None)])

        plan = plan_materialization([rent], MARCH_2025, existing)

        assert plan.to_create == ()
        assert plan.skipped == (rent.natural_key,)

    def test_existing_series_key_skips_after_rename(self, bill):
        """Renaming a template does not re-create its period record."""
        rent = bill()
        stored = _record_like(rent, MARCH_2025, series_key=rent.series_key, description="Old rent")
        plan = plan_materialization([rent], MARCH_2025, ExistingKeys.from_records([stored]))

        assert plan.to_create == ()

    def test_other_owner_does_not_block(self, bill):
        rent = bill()
        foreign = _record_like(rent, MARCH_2025, owner_id=uuid4(), series_key=None)

        plan = plan_materialization([rent], MARCH_2025, ExistingKeys.from_records([foreign]))

        assert len(plan.to_create) == 1

    def test_duplicate_templates_in_batch(self, bill):
        """Two templates with one natural key produce one record."""
        owner = uuid4()
        first, second = bill(owner_id=owner), bill(owner_id=owner)

        plan = plan_materialization([first, second], MARCH_2025, ExistingKeys())

        assert [p.template_id for p in plan.to_create] == [first.id]
        assert plan.skipped == (second.natural_key,)

    def test_ineligible_reported(self, bill, template_factory):
        weekly = template_factory()
        plan = plan_materialization([weekly, bill()], MARCH_2025, ExistingKeys())

        assert plan.ineligible == (weekly.id,)
        assert len(plan.to_create) == 1

    def test_existing_keys_not_mutated(self, bill):
        existing = ExistingKeys()
        plan_materialization([bill()], MARCH_2025, existing)

        assert existing.natural == {}
        assert existing.series == {}

    def test_skipped_key_type(self, bill):
        rent = bill()
        existing = ExistingKeys.from_records([_record_like(rent, MARCH_2025)])
        plan = plan_materialization([rent], MARCH_2025, existing)
        assert isinstance(plan.skipped[0], NaturalKey)
