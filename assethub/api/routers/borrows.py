"""Borrow record API endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from assethub.api.deps import get_db
from assethub.core.config import get_settings
from assethub.services.borrow_tracking import list_overdue_borrow_records
from assethub.services.notifications import TodoNotificationPropagator, send_borrow_overdue_reminders

router = APIRouter(prefix="/assets/borrows", tags=["borrows"])


# Schemas
class OverdueBorrowResponse(BaseModel):
    id: str
    asset_id: str
    asset_name: str
    asset_owner: Optional[str] = None
    borrow_operation_id: str
    borrower: Optional[str] = None
    planned_return_date: Optional[str] = None
    status: str
    overdue_notified_at: Optional[str] = None
    external_todo_id: Optional[str] = None
    created_at: Optional[str] = None


class OverdueNotifyRequest(BaseModel):
    reference_date: Optional[str] = Field(None, description="YYYY-MM-DD, defaults to today")
    locale: str = Field("en", pattern="^(en|zh)$")


class OverdueNotifyResponse(BaseModel):
    total: int
    sent: int
    skipped: List[str]
    errors: List[str]


# Endpoints
@router.get("/overdue", response_model=List[OverdueBorrowResponse])
async def list_overdue(
    db: Session = Depends(get_db),
    reference_date: Optional[str] = Query(None, description="YYYY-MM-DD, defaults to today"),
):
    """List active borrows past their planned return date."""
    records: List[Dict[str, Any]] = list_overdue_borrow_records(db, reference_date)
    return [OverdueBorrowResponse(**r) for r in records]


@router.post("/overdue/notify", response_model=OverdueNotifyResponse)
def notify_overdue(
    body: OverdueNotifyRequest,
    db: Session = Depends(get_db),
):
    """Send a reminder for every overdue borrow not yet notified."""
    summary = send_borrow_overdue_reminders(
        db,
        TodoNotificationPropagator(get_settings()),
        reference_date=body.reference_date,
        locale=body.locale,
    )
    return OverdueNotifyResponse(**summary)
