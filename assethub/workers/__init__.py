"""Celery workers for Asset Hub."""

from assethub.workers.notification_tasks import (
    celery_app,
    propagate_approval_created,
    propagate_approval_completed,
    send_overdue_reminders,
)

__all__ = [
    "celery_app",
    "propagate_approval_created",
    "propagate_approval_completed",
    "send_overdue_reminders",
]
