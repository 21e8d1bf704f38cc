from typing import Dict, Generator, Optional
from urllib.parse import unquote

from fastapi import BackgroundTasks, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from assethub.core.approval import ApprovalService
from assethub.core.config import get_settings
from assethub.db.session import SessionLocal
from assethub.services.notifications import (
    BackgroundNotificationPropagator,
    TodoNotificationPropagator,
    build_propagator,
)


def get_db() -> Generator:
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _decode(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = unquote(value).strip()
    return value or None


def get_optional_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> Optional[Dict[str, Optional[str]]]:
    """Caller identity from the host platform headers, if present."""
    user_id = _decode(x_user_id)
    if not user_id:
        return None
    return {"id": user_id, "name": _decode(x_user_name)}


def get_current_actor(
    actor: Optional[Dict[str, Optional[str]]] = Depends(get_optional_actor),
) -> Dict[str, Optional[str]]:
    """Caller identity; the X-User-Id header is required."""
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return actor


def get_notifier(background_tasks: BackgroundTasks):
    """
    Notification propagator for the configured mode.

    Direct todo calls are deferred until the response has been sent.
    """
    propagator = build_propagator(get_settings())
    if isinstance(propagator, TodoNotificationPropagator):
        return BackgroundNotificationPropagator(background_tasks, propagator, SessionLocal)
    return propagator


def get_approval_service(
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
) -> ApprovalService:
    return ApprovalService(db, notifier=notifier)
