"""Borrow record bookkeeping.

A BorrowRecord is opened when a ``borrow`` operation is approved and closed
when a later ``return`` operation on the same asset is approved. Records
with a planned return date in the past feed the overdue reminder sweep.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from assethub.core.exceptions import NotFound
from assethub.db.base import utcnow
from assethub.db.models import Asset, BorrowRecord

logger = logging.getLogger(__name__)

ACTIVE = "active"
RETURNED = "returned"


def upsert_borrow_record(
    db: Session,
    *,
    asset_id: str,
    borrow_operation_id: str,
    borrower: Optional[str] = None,
    planned_return_date: Optional[str] = None,
) -> BorrowRecord:
    """
    Open the record for a borrow operation, or refresh an existing one.

    Existing values are only overwritten by non-empty new values.
    """
    record = (
        db.query(BorrowRecord)
        .filter(BorrowRecord.borrow_operation_id == borrow_operation_id)
        .first()
    )
    if record:
        if borrower:
            record.borrower = borrower
        if planned_return_date:
            record.planned_return_date = planned_return_date
        record.updated_at = utcnow()
        db.flush()
        return record

    record = BorrowRecord(
        asset_id=asset_id,
        borrow_operation_id=borrow_operation_id,
        borrower=borrower,
        planned_return_date=planned_return_date,
        status=ACTIVE,
    )
    db.add(record)
    db.flush()
    logger.info(f"Opened borrow record {record.id} for asset {asset_id}")
    return record


def mark_borrow_returned(db: Session, *, asset_id: str, return_operation_id: str) -> Optional[BorrowRecord]:
    """Close the most recent active record for ``asset_id``, if any."""
    record = (
        db.query(BorrowRecord)
        .filter(BorrowRecord.asset_id == asset_id, BorrowRecord.status == ACTIVE)
        .order_by(BorrowRecord.created_at.desc())
        .first()
    )
    if not record:
        logger.info(f"No active borrow record to close for asset {asset_id}")
        return None

    now = utcnow()
    record.status = RETURNED
    record.return_operation_id = return_operation_id
    record.return_operation_date = now
    record.updated_at = now
    db.flush()
    return record


def _reference_day(reference_date: Union[str, date, datetime, None]) -> str:
    if reference_date is None:
        return utcnow().date().isoformat()
    if isinstance(reference_date, datetime):
        return reference_date.date().isoformat()
    if isinstance(reference_date, date):
        return reference_date.isoformat()
    return str(reference_date)[:10]


def list_overdue_borrow_records(
    db: Session,
    reference_date: Union[str, date, datetime, None] = None,
) -> List[Dict[str, Any]]:
    """
    List active borrow records whose planned return date is before the reference day.

    Args:
        db: Database session
        reference_date: Day to compare against (``YYYY-MM-DD``), defaults to today

    Returns:
        Record dicts with the asset name and owner, oldest due date first
    """
    day = _reference_day(reference_date)
    rows = (
        db.query(BorrowRecord, Asset.name, Asset.owner)
        .join(Asset, Asset.id == BorrowRecord.asset_id)
        .filter(
            BorrowRecord.status == ACTIVE,
            BorrowRecord.planned_return_date.isnot(None),
            func.substr(BorrowRecord.planned_return_date, 1, 10) < day,
        )
        .order_by(BorrowRecord.planned_return_date.asc(), BorrowRecord.created_at.asc())
        .all()
    )
    results = []
    for record, asset_name, asset_owner in rows:
        item = borrow_record_to_dict(record)
        item["asset_name"] = asset_name
        item["asset_owner"] = asset_owner
        results.append(item)
    return results


def mark_overdue_notified(db: Session, record_id: str) -> BorrowRecord:
    record = db.get(BorrowRecord, record_id)
    if not record:
        raise NotFound(f"Borrow record {record_id} not found", record_id=record_id)
    now = utcnow()
    record.overdue_notified_at = now
    record.updated_at = now
    db.flush()
    return record


def borrow_record_to_dict(record: BorrowRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "asset_id": record.asset_id,
        "borrow_operation_id": record.borrow_operation_id,
        "borrower": record.borrower,
        "planned_return_date": record.planned_return_date,
        "status": record.status,
        "return_operation_id": record.return_operation_id,
        "return_operation_date": record.return_operation_date.isoformat() if record.return_operation_date else None,
        "overdue_notified_at": record.overdue_notified_at.isoformat() if record.overdue_notified_at else None,
        "external_todo_id": record.external_todo_id,
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "updated_at": record.updated_at.isoformat() if record.updated_at else None,
    }
