"""
Race safety of period materialization.

Two callers may both read "nothing exists for this period yet" and then
both try to insert.  The (owner, series key, period key) unique
constraint must reject the second batch, which surfaces as
DuplicateMaterializationError and leaves the first caller's record as the
only one.

The interleaving is simulated sequentially: the losing caller is given a
record selector that still returns the stale pre-insert view of the
period.
"""

from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from recurrence_kernel.db.engine import build_engine, create_tables
from recurrence_kernel.domain.calendar_date import CalendarDate, MaterializationWindow
from recurrence_kernel.domain.recurrence import IntervalUnit, TemplateKind
from recurrence_kernel.exceptions import DuplicateMaterializationError, StoreWriteError
from recurrence_kernel.selectors.record_selector import RecordSelector
from recurrence_kernel.services.template_service import TemplateService
from recurrence_services.materialization_service import MaterializationService

MARCH_2025 = MaterializationWindow.for_month(2025, 3)


class _StaleRecordSelector(RecordSelector):
    """Reports the period as empty, as seen before the winner's insert."""

    def for_period(self, period_key, owner_ids):
        return []


class TestSameSessionRace:

    def test_loser_gets_duplicate_error(self, session, create_bill, owner_id, system_actor_id):
        template = create_bill()
        winner = MaterializationService(session, system_actor_id)
        loser = MaterializationService(
            session, system_actor_id, record_selector=_StaleRecordSelector(session)
        )

        winner.materialize_for_owner(owner_id, MARCH_2025)
        with pytest.raises(DuplicateMaterializationError) as exc_info:
            loser.materialize_for_owner(owner_id, MARCH_2025)

        assert exc_info.value.period_key == "2025-03"
        assert exc_info.value.code == "DUPLICATE_MATERIALIZATION"
        assert isinstance(exc_info.value, StoreWriteError)
        stored = RecordSelector(session).for_period("2025-03", {owner_id})
        assert len(stored) == 1
        assert stored[0].series_key == template.series_key

    def test_session_usable_after_rejected_batch(
        self, session, create_bill, record_service, owner_id, system_actor_id, test_actor_id
    ):
        create_bill()
        MaterializationService(session, system_actor_id).materialize_for_owner(owner_id, MARCH_2025)
        loser = MaterializationService(
            session, system_actor_id, record_selector=_StaleRecordSelector(session)
        )
        with pytest.raises(DuplicateMaterializationError):
            loser.materialize_for_owner(owner_id, MARCH_2025)

        record = record_service.create_record(
            owner_id, TemplateKind.TASK, "Renew lease", CalendarDate(2025, 3, 20), test_actor_id
        )

        assert record_service.get(record.id).description == "Renew lease"

    def test_rejected_batch_inserts_nothing_of_itself(
        self, session, create_bill, template_service, owner_id, system_actor_id, test_actor_id
    ):
        """A batch with one colliding row is rejected as a whole."""
        create_bill()
        MaterializationService(session, system_actor_id).materialize_for_owner(owner_id, MARCH_2025)
        internet = template_service.create_template(
            owner_id,
            TemplateKind.TRANSACTION,
            "Internet",
            test_actor_id,
            anchor_date=CalendarDate(2025, 1, 10),
            interval_unit=IntervalUnit.MONTHLY,
        )
        loser = MaterializationService(
            session, system_actor_id, record_selector=_StaleRecordSelector(session)
        )

        with pytest.raises(DuplicateMaterializationError):
            loser.materialize_for_owner(owner_id, MARCH_2025)

        assert RecordSelector(session).for_template(internet.id)[-1].period_key == "2025-01"

    def test_rejection_logged(self, session, create_bill, owner_id, system_actor_id, captured_logs):
        create_bill()
        MaterializationService(session, system_actor_id).materialize_for_owner(owner_id, MARCH_2025)
        loser = MaterializationService(
            session, system_actor_id, record_selector=_StaleRecordSelector(session)
        )
        with pytest.raises(DuplicateMaterializationError):
            loser.materialize_for_owner(owner_id, MARCH_2025)

        assert any(r["message"] == "materialization_write_rejected" for r in captured_logs())


class TestTwoSessionRace:
    """Two sessions on one file database, committing in turn."""

    @pytest.fixture
    def file_engine(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'race.db'}")
        create_tables(engine)
        yield engine
        engine.dispose()

    def test_second_session_rejected(self, file_engine, system_actor_id, test_actor_id):
        owner = uuid4()
        with Session(file_engine) as setup:
            TemplateService(setup).create_template(
                owner,
                TemplateKind.TRANSACTION,
                "Rent",
                test_actor_id,
                anchor_date=CalendarDate(2025, 1, 31),
                day_of_month=31,
            )
            setup.commit()

        with Session(file_engine) as first:
            MaterializationService(first, system_actor_id).materialize_for_owner(owner, MARCH_2025)
            first.commit()

        with Session(file_engine) as second:
            loser = MaterializationService(
                second, system_actor_id, record_selector=_StaleRecordSelector(second)
            )
            with pytest.raises(DuplicateMaterializationError):
                loser.materialize_for_owner(owner, MARCH_2025)
            second.rollback()

        with Session(file_engine) as check:
            assert len(RecordSelector(check).for_period("2025-03", {owner})) == 1

    def test_late_session_sees_committed_record(self, file_engine, system_actor_id, test_actor_id):
        owner = uuid4()
        with Session(file_engine) as setup:
            TemplateService(setup).create_template(
                owner,
                TemplateKind.TRANSACTION,
                "Rent",
                test_actor_id,
                anchor_date=CalendarDate(2025, 1, 31),
            )
            setup.commit()

        with Session(file_engine) as first:
            MaterializationService(first, system_actor_id).materialize_for_owner(owner, MARCH_2025)
            first.commit()

        with Session(file_engine) as second:
            result = MaterializationService(second, system_actor_id).materialize_for_owner(owner, MARCH_2025)
            second.commit()

        assert result.created == ()
        assert len(result.skipped) == 1
