"""Services for Asset Hub."""

from assethub.services.borrow_tracking import (
    list_overdue_borrow_records,
    mark_borrow_returned,
    mark_overdue_notified,
    upsert_borrow_record,
)
from assethub.services.notifications import (
    NullNotificationPropagator,
    QueuedNotificationPropagator,
    TodoNotificationPropagator,
    build_propagator,
    send_borrow_overdue_reminders,
)

__all__ = [
    "list_overdue_borrow_records",
    "mark_borrow_returned",
    "mark_overdue_notified",
    "upsert_borrow_record",
    "NullNotificationPropagator",
    "QueuedNotificationPropagator",
    "TodoNotificationPropagator",
    "build_propagator",
    "send_borrow_overdue_reminders",
]
