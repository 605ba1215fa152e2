"""Tests for the reading store invariants."""

import uuid
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from meter_reader.core.errors import AlreadyConfirmed, DuplicatePeriod, NotFound, StoreUnavailable
from meter_reader.models.enums import MeterKind, ReadingState
from meter_reader.models.reading import Reading
from meter_reader.services import reading_store

SUBMITTED = datetime(2024, 5, 10, 9, 30, tzinfo=UTC)


def _create(
    db: Session,
    customer_code: str = "C1",
    meter_kind: MeterKind = MeterKind.WATER,
    period: str = "2024-05",
    value: str = "1234.5",
    submitted_at: datetime = SUBMITTED,
) -> Reading:
    return reading_store.create(
        db,
        customer_code,
        meter_kind,
        period,
        Decimal(value),
        "meter_test.jpg",
        submitted_at,
    )


def _count(db: Session) -> int:
    return db.scalar(select(func.count()).select_from(Reading))


class TestCreate:
    """Creation and the one-reading-per-period rule."""

    def test_create_pending_reading(self, db: Session) -> None:
        reading = _create(db)

        assert reading.state == ReadingState.PENDING
        assert reading.value == Decimal("1234.5")
        assert reading.period == "2024-05"
        assert reading.confirmed_at is None
        assert uuid.UUID(reading.id)

    def test_each_reading_gets_a_fresh_id(self, db: Session) -> None:
        first = _create(db, customer_code="C1")
        second = _create(db, customer_code="C2")
        third = _create(db, customer_code="C1", meter_kind=MeterKind.GAS)

        assert len({first.id, second.id, third.id}) == 3

    def test_duplicate_triple_rejected(self, db: Session) -> None:
        _create(db)

        with pytest.raises(DuplicatePeriod):
            _create(db, value="99")

        assert _count(db) == 1

    def test_duplicate_rejected_regardless_of_state(self, db: Session) -> None:
        reading = _create(db)
        reading_store.confirm(db, reading.id, Decimal("1234.5"))

        with pytest.raises(DuplicatePeriod):
            _create(db)

    def test_other_kind_period_or_customer_allowed(self, db: Session) -> None:
        _create(db)
        _create(db, meter_kind=MeterKind.GAS)
        _create(db, period="2024-06")
        _create(db, customer_code="C2")

        assert _count(db) == 4

    def test_session_usable_after_duplicate(self, db: Session) -> None:
        _create(db)
        with pytest.raises(DuplicatePeriod):
            _create(db)

        other = _create(db, period="2024-06")
        assert reading_store.find_by_id(db, other.id) is not None

    def test_created_reading_needs_no_reload(self, db: Session, monkeypatch: pytest.MonkeyPatch) -> None:
        """Once committed, the returned reading is read without touching the database."""
        reading = _create(db)

        def unavailable(*args, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        for name in ("refresh", "get", "execute", "scalars"):
            monkeypatch.setattr(db, name, unavailable)

        assert inspect(reading).detached
        assert reading.state == ReadingState.PENDING
        assert reading.value == Decimal("1234.5")
        assert reading.confirmed_at is None
        assert reading.created_at is not None
        assert reading.image_ref == "meter_test.jpg"


class TestLookups:
    """Presence is always distinguishable from absence."""

    def test_find_by_period_absent(self, db: Session) -> None:
        assert reading_store.find_by_period(db, "C1", MeterKind.WATER, "2024-05") is None

    def test_find_by_period_present(self, db: Session) -> None:
        created = _create(db)

        found = reading_store.find_by_period(db, "C1", MeterKind.WATER, "2024-05")
        assert found is not None
        assert found.id == created.id
        assert reading_store.find_by_period(db, "C1", MeterKind.GAS, "2024-05") is None

    def test_find_by_id_absent(self, db: Session) -> None:
        assert reading_store.find_by_id(db, str(uuid.uuid4())) is None


class TestConfirm:
    """Single-shot confirmation bound to one id."""

    def test_confirm_sets_value_and_state(self, db: Session) -> None:
        reading = _create(db)

        confirmed = reading_store.confirm(db, reading.id, Decimal("1240.125"))

        assert confirmed.state == ReadingState.CONFIRMED
        assert confirmed.value == Decimal("1240.125")
        assert confirmed.confirmed_at is not None

    def test_second_confirm_rejected_value_unchanged(self, db: Session) -> None:
        reading = _create(db)
        reading_store.confirm(db, reading.id, Decimal("1240"))

        with pytest.raises(AlreadyConfirmed):
            reading_store.confirm(db, reading.id, Decimal("1240"))
        with pytest.raises(AlreadyConfirmed):
            reading_store.confirm(db, reading.id, Decimal("5"))

        stored = reading_store.find_by_id(db, reading.id)
        assert stored is not None
        assert stored.value == Decimal("1240")

    def test_confirm_unknown_id(self, db: Session) -> None:
        with pytest.raises(NotFound):
            reading_store.confirm(db, str(uuid.uuid4()), Decimal("1"))

    def test_confirm_touches_only_its_reading(self, db: Session) -> None:
        target = _create(db, customer_code="C1")
        other = _create(db, customer_code="C2", value="77.7")

        reading_store.confirm(db, target.id, Decimal("1"))

        untouched = reading_store.find_by_id(db, other.id)
        assert untouched is not None
        assert untouched.state == ReadingState.PENDING
        assert untouched.value == Decimal("77.7")


class TestListByCustomer:
    """Listing order and filtering."""

    def test_newest_submission_first(self, db: Session) -> None:
        march = _create(db, period="2024-03", submitted_at=SUBMITTED - timedelta(days=60))
        may = _create(db, period="2024-05", submitted_at=SUBMITTED)
        april = _create(db, period="2024-04", submitted_at=SUBMITTED - timedelta(days=30))

        readings = reading_store.list_by_customer(db, "C1")

        assert [r.id for r in readings] == [may.id, april.id, march.id]

    def test_only_that_customer(self, db: Session) -> None:
        _create(db, customer_code="C1")
        _create(db, customer_code="C2")

        readings = reading_store.list_by_customer(db, "C2")
        assert [r.customer_code for r in readings] == ["C2"]

    def test_filter_by_meter_kind(self, db: Session) -> None:
        _create(db, meter_kind=MeterKind.WATER)
        gas = _create(db, meter_kind=MeterKind.GAS)

        readings = reading_store.list_by_customer(db, "C1", MeterKind.GAS)
        assert [r.id for r in readings] == [gas.id]

    def test_unknown_customer_is_empty(self, db: Session) -> None:
        assert reading_store.list_by_customer(db, "nobody") == []


def test_database_failure_reported_as_store_unavailable(
    db: Session, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Connectivity errors surface as StoreUnavailable."""

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(db, "scalars", broken)

    with pytest.raises(StoreUnavailable):
        reading_store.find_by_period(db, "C1", MeterKind.WATER, "2024-05")
