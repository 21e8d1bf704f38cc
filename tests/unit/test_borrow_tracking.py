"""Tests for borrow record bookkeeping."""

from datetime import date, datetime

import pytest

from assethub.core.exceptions import NotFound
from assethub.services.borrow_tracking import (
    list_overdue_borrow_records,
    mark_borrow_returned,
    mark_overdue_notified,
    upsert_borrow_record,
)
from assethub.db.models import BorrowRecord

from tests.factories import create_asset, create_borrow_record


class TestUpsertBorrowRecord:

    def test_creates_active_record(self, db_session):
        asset = create_asset(db_session)

        record = upsert_borrow_record(
            db_session, asset_id=asset.id, borrow_operation_id="OP-1",
            borrower="Carol", planned_return_date="2024-03-10",
        )

        assert record.id.startswith("BOR-")
        assert record.status == "active"
        assert record.borrower == "Carol"

    def test_existing_values_kept_when_new_ones_empty(self, db_session):
        asset = create_asset(db_session)
        upsert_borrow_record(
            db_session, asset_id=asset.id, borrow_operation_id="OP-1",
            borrower="Carol", planned_return_date="2024-03-10",
        )

        record = upsert_borrow_record(
            db_session, asset_id=asset.id, borrow_operation_id="OP-1",
            borrower=None, planned_return_date="2024-03-20",
        )

        assert db_session.query(BorrowRecord).count() == 1
        assert record.borrower == "Carol"
        assert record.planned_return_date == "2024-03-20"


class TestMarkBorrowReturned:

    def test_closes_active_record(self, db_session):
        asset = create_asset(db_session)
        record = create_borrow_record(db_session, asset=asset)

        closed = mark_borrow_returned(db_session, asset_id=asset.id, return_operation_id="OP-R")

        assert closed is record
        assert record.status == "returned"
        assert record.return_operation_id == "OP-R"

    def test_no_active_record(self, db_session):
        asset = create_asset(db_session)
        create_borrow_record(db_session, asset=asset, status="returned")

        assert mark_borrow_returned(db_session, asset_id=asset.id, return_operation_id="OP-R") is None


class TestOverdueRecords:

    def test_lists_records_due_before_reference_day(self, db_session):
        asset = create_asset(db_session, name="ThinkPad X1", owner="Carol")
        overdue = create_borrow_record(db_session, asset=asset, planned_return_date="2024-03-01")
        create_borrow_record(db_session, asset=asset, planned_return_date="2024-03-10")
        create_borrow_record(db_session, asset=asset, planned_return_date=None)
        create_borrow_record(db_session, asset=asset, planned_return_date="2024-02-01", status="returned")

        records = list_overdue_borrow_records(db_session, "2024-03-10")

        assert [r["id"] for r in records] == [overdue.id]
        assert records[0]["asset_name"] == "ThinkPad X1"
        assert records[0]["asset_owner"] == "Carol"

    def test_date_prefix_compared(self, db_session):
        """Timestamps are compared by their day only."""
        asset = create_asset(db_session)
        create_borrow_record(db_session, asset=asset, planned_return_date="2024-03-09T18:00:00Z")

        assert len(list_overdue_borrow_records(db_session, date(2024, 3, 10))) == 1
        assert list_overdue_borrow_records(db_session, datetime(2024, 3, 9, 23, 0)) == []

    def test_ordered_by_due_date(self, db_session):
        asset = create_asset(db_session)
        later = create_borrow_record(db_session, asset=asset, planned_return_date="2024-02-20")
        earlier = create_borrow_record(db_session, asset=asset, planned_return_date="2024-02-01")

        records = list_overdue_borrow_records(db_session, "2024-03-01")

        assert [r["id"] for r in records] == [earlier.id, later.id]


class TestMarkOverdueNotified:

    def test_sets_timestamp(self, db_session):
        record = create_borrow_record(db_session, asset=create_asset(db_session))

        mark_overdue_notified(db_session, record.id)

        assert record.overdue_notified_at is not None

    def test_unknown_record(self, db_session):
        with pytest.raises(NotFound):
            mark_overdue_notified(db_session, "BOR-MISSING")
