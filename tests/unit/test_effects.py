"""Tests for the side-effect appliers run on approval."""

import pytest

from assethub.core.approval.effects import (
    SubjectKind,
    apply_consumable_effect,
    apply_side_effect,
    build_applier_table,
    mark_linked_operations_pending,
    resolve_consumable_status,
    settle_linked_operations,
    subject_kind,
)
from assethub.core.approval.states import OperationStatus
from assethub.core.exceptions import InsufficientStock, NotFound, ValidationError
from assethub.db.models import BorrowRecord

from tests.factories import (
    create_approval_request,
    create_asset,
    create_asset_operation,
    create_borrow_record,
    create_consumable,
    create_consumable_operation,
)


class TestSubjectKind:

    def test_asset(self, db_session):
        asset = create_asset(db_session)
        request = create_approval_request(db_session, type="borrow", asset=asset)
        assert subject_kind(request) is SubjectKind.ASSET

    def test_consumable(self, db_session):
        consumable = create_consumable(db_session)
        request = create_approval_request(db_session, type="outbound", consumable=consumable)
        assert subject_kind(request) is SubjectKind.CONSUMABLE

    def test_none(self, db_session):
        assert subject_kind(create_approval_request(db_session)) is SubjectKind.NONE

    def test_both_subjects_rejected(self, db_session):
        request = create_approval_request(
            db_session, asset=create_asset(db_session), consumable=create_consumable(db_session),
        )
        with pytest.raises(ValidationError):
            subject_kind(request)


class TestApplierTable:

    def test_missing_kind_rejected(self):
        with pytest.raises(ValueError, match="consumable"):
            build_applier_table({
                SubjectKind.ASSET: lambda db, r: {},
                SubjectKind.NONE: lambda db, r: {},
            })

    def test_complete_table(self):
        table = build_applier_table({kind: (lambda db, r: {}) for kind in SubjectKind})
        assert set(table) == set(SubjectKind)


class TestConsumableStatus:

    @pytest.mark.parametrize("quantity,reserved,safety,current,expected", [
        (0, 0, 0, "in-stock", "out-of-stock"),
        (5, 5, 0, "in-stock", "reserved"),
        (5, 0, 10, "in-stock", "low-stock"),
        (25, 0, 10, "low-stock", "in-stock"),
        (0, 0, 0, "archived", "archived"),
    ])
    def test_status(self, quantity, reserved, safety, current, expected):
        assert resolve_consumable_status(
            quantity=quantity, reserved_quantity=reserved, safety_stock=safety, current_status=current,
        ) == expected


class TestAssetEffect:

    def test_borrow_sets_in_use_and_opens_record(self, db_session):
        """Approving a borrow marks the asset in use and records the borrower."""
        asset = create_asset(db_session, status="idle")
        operation = create_asset_operation(
            db_session,
            asset=asset,
            type="borrow",
            metadata={"operationTemplate": {"values": {"borrower": "Carol", "returnPlan": "2024-03-10"}}},
        )
        request = create_approval_request(db_session, type="borrow", asset=asset, operation=operation)

        summary = apply_side_effect(db_session, request)

        assert asset.status == "in-use"
        assert asset.owner == "Carol"
        assert operation.status == "done"
        record = db_session.query(BorrowRecord).filter_by(borrow_operation_id=operation.id).one()
        assert record.borrower == "Carol"
        assert record.planned_return_date == "2024-03-10"
        assert record.status == "active"
        assert summary["borrow_record_id"] == record.id
        assert summary["previous_status"] == "idle"

    def test_borrow_without_operation_keys_record_by_request(self, db_session):
        asset = create_asset(db_session)
        request = create_approval_request(
            db_session, type="borrow", asset=asset, metadata={"borrower": "Dan"},
        )

        apply_side_effect(db_session, request)

        record = db_session.query(BorrowRecord).filter_by(borrow_operation_id=request.id).one()
        assert record.borrower == "Dan"
        assert asset.owner == "Dan"

    def test_return_closes_active_record(self, db_session):
        asset = create_asset(db_session, status="in-use", owner="Carol")
        record = create_borrow_record(db_session, asset=asset)
        operation = create_asset_operation(db_session, asset=asset, type="return")
        request = create_approval_request(db_session, type="return", asset=asset, operation=operation)

        apply_side_effect(db_session, request)

        assert asset.status == "idle"
        assert record.status == "returned"
        assert record.return_operation_id == operation.id
        assert record.return_operation_date is not None

    @pytest.mark.parametrize("action,expected", [
        ("receive", "in-use"),
        ("inbound", "idle"),
        ("maintenance", "maintenance"),
        ("dispose", "retired"),
    ])
    def test_status_mapping(self, db_session, action, expected):
        asset = create_asset(db_session, status="in-use")
        operation = create_asset_operation(db_session, asset=asset, type=action)
        request = create_approval_request(db_session, type=action, asset=asset, operation=operation)

        apply_side_effect(db_session, request)

        assert asset.status == expected

    def test_purchase_leaves_status(self, db_session):
        asset = create_asset(db_session, status="idle")
        operation = create_asset_operation(db_session, asset=asset, type="purchase")
        request = create_approval_request(db_session, type="purchase", asset=asset, operation=operation)

        apply_side_effect(db_session, request)

        assert asset.status == "idle"
        assert operation.status == "done"

    def test_operation_type_wins_over_request_type(self, db_session):
        asset = create_asset(db_session, status="idle")
        operation = create_asset_operation(db_session, asset=asset, type="dispose")
        request = create_approval_request(db_session, type="generic", asset=asset, operation=operation)

        apply_side_effect(db_session, request)

        assert asset.status == "retired"

    def test_missing_asset(self, db_session):
        asset = create_asset(db_session)
        request = create_approval_request(db_session, type="borrow", asset=asset)
        request.asset_id = "AST-MISSING"

        with pytest.raises(NotFound):
            apply_side_effect(db_session, request)


class TestConsumableEffect:

    def test_outbound_reduces_quantity(self, db_session):
        consumable = create_consumable(db_session, quantity=10)
        operation = create_consumable_operation(db_session, consumable=consumable, quantity_delta=-4)
        request = create_approval_request(
            db_session, type="outbound", consumable=consumable, consumable_operation=operation,
        )

        summary = apply_side_effect(db_session, request)

        assert consumable.quantity == 6
        assert consumable.status == "in-stock"
        assert operation.status == "done"
        assert summary["applied"] is True

    def test_inbound_lifts_low_stock(self, db_session):
        """Five on hand with a safety stock of ten plus twenty inbound is back in stock."""
        consumable = create_consumable(db_session, quantity=5, safety_stock=10, status="low-stock")
        operation = create_consumable_operation(
            db_session, consumable=consumable, type="inbound", quantity_delta=20,
        )
        request = create_approval_request(
            db_session, type="inbound", consumable=consumable, consumable_operation=operation,
        )

        apply_side_effect(db_session, request)

        assert consumable.quantity == 25
        assert consumable.status == "in-stock"

    def test_insufficient_stock(self, db_session):
        consumable = create_consumable(db_session, quantity=3)
        operation = create_consumable_operation(db_session, consumable=consumable, quantity_delta=-5)
        request = create_approval_request(
            db_session, type="outbound", consumable=consumable, consumable_operation=operation,
        )

        with pytest.raises(InsufficientStock) as exc_info:
            apply_side_effect(db_session, request)

        assert exc_info.value.context["available"] == 3
        assert consumable.quantity == 3
        assert operation.status == "pending"

    def test_reserve_beyond_quantity(self, db_session):
        consumable = create_consumable(db_session, quantity=3)
        operation = create_consumable_operation(
            db_session, consumable=consumable, type="reserve", reserved_delta=4,
        )
        request = create_approval_request(
            db_session, type="reserve", consumable=consumable, consumable_operation=operation,
        )

        with pytest.raises(ValidationError):
            apply_side_effect(db_session, request)

    def test_release_below_zero(self, db_session):
        consumable = create_consumable(db_session, quantity=3, reserved_quantity=1)
        operation = create_consumable_operation(
            db_session, consumable=consumable, type="release", reserved_delta=-2,
        )
        request = create_approval_request(
            db_session, type="release", consumable=consumable, consumable_operation=operation,
        )

        with pytest.raises(ValidationError):
            apply_side_effect(db_session, request)

    def test_already_done_operation_skipped(self, db_session):
        consumable = create_consumable(db_session, quantity=10)
        operation = create_consumable_operation(
            db_session, consumable=consumable, quantity_delta=-4, status="done",
        )
        request = create_approval_request(
            db_session, type="outbound", consumable=consumable, consumable_operation=operation,
        )

        summary = apply_consumable_effect(db_session, request)

        assert summary["applied"] is False
        assert consumable.quantity == 10

    def test_without_operation_stock_unchanged(self, db_session):
        consumable = create_consumable(db_session, quantity=10)
        request = create_approval_request(db_session, type="adjust", consumable=consumable)

        summary = apply_side_effect(db_session, request)

        assert summary["applied"] is False
        assert consumable.quantity == 10

    def test_operation_for_other_consumable(self, db_session):
        consumable = create_consumable(db_session)
        other = create_consumable(db_session)
        operation = create_consumable_operation(db_session, consumable=other, quantity_delta=-1)
        request = create_approval_request(
            db_session, type="outbound", consumable=consumable, consumable_operation=operation,
        )

        with pytest.raises(ValidationError):
            apply_side_effect(db_session, request)


class TestNoEffect:

    def test_generic_request(self, db_session):
        request = create_approval_request(db_session, type="generic")
        assert apply_side_effect(db_session, request) == {"subject": "none"}


class TestLinkedOperations:

    def test_settle_cancels_pending(self, db_session):
        asset = create_asset(db_session)
        operation = create_asset_operation(db_session, asset=asset)
        request = create_approval_request(db_session, type="borrow", asset=asset, operation=operation)

        settle_linked_operations(db_session, request, OperationStatus.CANCELLED)

        assert operation.status == "cancelled"

    def test_settle_never_reopens_done(self, db_session):
        asset = create_asset(db_session)
        operation = create_asset_operation(db_session, asset=asset, status="done")
        request = create_approval_request(db_session, type="borrow", asset=asset, operation=operation)

        settle_linked_operations(db_session, request, OperationStatus.CANCELLED)

        assert operation.status == "done"

    def test_mark_pending(self, db_session):
        consumable = create_consumable(db_session)
        operation = create_consumable_operation(db_session, consumable=consumable, status="cancelled")
        request = create_approval_request(
            db_session, type="outbound", consumable=consumable, consumable_operation=operation,
        )

        mark_linked_operations_pending(db_session, request)

        assert operation.status == "pending"

    def test_mark_pending_missing_operation(self, db_session):
        asset = create_asset(db_session)
        operation = create_asset_operation(db_session, asset=asset)
        request = create_approval_request(db_session, type="borrow", asset=asset, operation=operation)
        request.operation_id = "OP-MISSING"

        with pytest.raises(NotFound):
            mark_linked_operations_pending(db_session, request)
