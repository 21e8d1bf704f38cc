"""Celery tasks for notification propagation.

Provides async task processing for:
- Approval todo creation, completion and reassignment (queued notification mode)
- Periodic borrow overdue reminders

Tasks never retry: propagation is at most once, and a failed call is
only logged.
"""

from typing import Optional, Dict, Any
import logging

from celery import Celery, shared_task
from celery.signals import worker_process_init

from assethub.core.config import get_settings
from assethub.core.logger import configure_logging
from assethub.db.session import SessionLocal
from assethub.services.notifications import (
    TodoNotificationPropagator,
    deliver_completed,
    deliver_created,
    deliver_reassigned,
    send_borrow_overdue_reminders,
)

logger = logging.getLogger(__name__)
settings = get_settings()

# Initialize Celery
celery_app = Celery(
    'assethub',
    broker=settings.celery_broker,
    backend=settings.celery_backend,
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    task_routes={
        'assethub.workers.notification_tasks.propagate_approval_created': {'queue': 'notifications'},
        'assethub.workers.notification_tasks.propagate_approval_completed': {'queue': 'notifications'},
        'assethub.workers.notification_tasks.propagate_approval_reassigned': {'queue': 'notifications'},
    },
    task_default_queue='default',
)


@worker_process_init.connect
def _configure_worker_logging(**kwargs):
    configure_logging(get_settings())


@shared_task(max_retries=0)
def propagate_approval_created(request: Dict[str, Any]) -> Optional[str]:
    """
    Create the approver's todo and store its id on the request.

    Args:
        request: Approval request snapshot taken after commit

    Returns:
        External todo id, or None
    """
    return deliver_created(request, TodoNotificationPropagator(get_settings()), SessionLocal)


@shared_task(max_retries=0)
def propagate_approval_completed(request: Dict[str, Any]) -> None:
    """
    Complete the approver's todo.

    The snapshot may predate the creation task storing the todo id, so a
    missing id is looked up again.
    """
    deliver_completed(request, TodoNotificationPropagator(get_settings()), SessionLocal)


@shared_task(max_retries=0)
def propagate_approval_reassigned(request: Dict[str, Any], previous: Dict[str, Any]) -> Optional[str]:
    """Move the approver's todo to the new approver."""
    return deliver_reassigned(request, previous, TodoNotificationPropagator(get_settings()), SessionLocal)


@celery_app.task
def send_overdue_reminders(reference_date: Optional[str] = None, locale: str = "en") -> Dict[str, Any]:
    """
    Remind borrowers of assets past their planned return date.

    This task should be scheduled daily.
    """
    db = SessionLocal()
    try:
        return send_borrow_overdue_reminders(
            db,
            TodoNotificationPropagator(get_settings()),
            reference_date=reference_date,
            locale=locale,
        )
    finally:
        db.close()
