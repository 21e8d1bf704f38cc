"""Notification propagation to the external todo system.

Handles:
- Creating a todo for the approver when a request is submitted
- Completing the todo when the request is finalized
- Moving the todo to a new approver on reassignment
- Borrow overdue reminders
- Running propagation after the HTTP response, or on a Celery worker in queued mode

Propagation is best effort and at most once. Every failure is logged and
discarded; nothing here raises into the approval flow or touches request
state beyond storing the returned todo id.
"""

import logging
from datetime import date, datetime
from typing import Callable, Optional, Dict, Any, Union

import httpx
from jinja2 import Template
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assethub.core.config import Settings, get_settings
from assethub.db.models import ApprovalRequest, BorrowRecord
from assethub.services.borrow_tracking import list_overdue_borrow_records, mark_overdue_notified

logger = logging.getLogger(__name__)


APPROVAL_CREATED_TEMPLATE = Template(
    "**Asset Approval Reminder**\n"
    "- Type: {{ type }}\n"
    "- Title: {{ title }}\n"
    "- Applicant: {{ applicant_name or applicant_id or '-' }}"
    "{% if reason %}\n- Reason: {{ reason }}{% endif %}"
)

OVERDUE_TEMPLATES = {
    "zh": Template(
        "**借用逾期提醒**\n"
        "- 资产：{{ asset_name }} (#{{ asset_id }})\n"
        "- 借用人：{{ borrower or '-' }}\n"
        "{% if planned_return_date %}- 计划归还：{{ planned_return_date }}\n{% endif %}"
        "- 当前状态：未归还"
    ),
    "en": Template(
        "**Borrow Overdue Reminder**\n"
        "- Asset: {{ asset_name }} (#{{ asset_id }})\n"
        "- Borrower: {{ borrower or '-' }}\n"
        "{% if planned_return_date %}- Planned Return: {{ planned_return_date }}\n{% endif %}"
        "- Current Status: Not Returned"
    ),
}


def _extract_todo_id(body: Any) -> Optional[str]:
    """Todo ids come back as ``{"id"}`` or wrapped as ``{"data": {"id"}}``."""
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if isinstance(data, dict) and data.get("id"):
        return str(data["id"])
    if body.get("id"):
        return str(body["id"])
    return None


class NullNotificationPropagator:
    """Propagator used when the todo system is not configured."""

    enabled = False

    def on_created(self, request: Dict[str, Any]) -> Optional[str]:
        logger.info(f"Todo integration disabled, skipping creation for {request.get('id')}")
        return None

    def on_completed(self, request: Dict[str, Any]) -> None:
        logger.info(f"Todo integration disabled, skipping completion for {request.get('id')}")

    def on_reassigned(self, request: Dict[str, Any], previous: Dict[str, Any]) -> Optional[str]:
        logger.info(f"Todo integration disabled, skipping reassignment for {request.get('id')}")
        return None


class TodoNotificationPropagator:
    """
    Calls the todo system over HTTP.

    One request per event, no retries. An unconfigured base URL or token
    turns every call into a logged no-op.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.Client] = None):
        """
        Initialize the propagator.

        Args:
            settings: Application settings, defaults to ``get_settings()``
            client: Optional preconfigured httpx client
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        return self.settings.todo_enabled

    def _base_url(self) -> str:
        return (self.settings.todo_base_url or "").rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.settings.todo_token}",
        }

    def _link(self, path: str) -> Optional[str]:
        base = (self.settings.todo_link_base or "").rstrip("/")
        return f"{base}{path}" if base else None

    def _send(self, method: str, path: str, payload: Dict[str, Any]) -> httpx.Response:
        url = f"{self._base_url()}{path}"
        if self._client is not None:
            response = self._client.request(method, url, json=payload, headers=self._headers())
        else:
            with httpx.Client(timeout=self.settings.todo_timeout) as client:
                response = client.request(method, url, json=payload, headers=self._headers())
        response.raise_for_status()
        return response

    def on_created(self, request: Dict[str, Any]) -> Optional[str]:
        """
        Create a todo for the approver.

        Args:
            request: Approval request snapshot

        Returns:
            External todo id, or None if disabled or the call failed
        """
        if not self.enabled:
            logger.info(f"Todo integration not configured, skipping creation for {request.get('id')}")
            return None

        payload = {
            "title": request.get("title"),
            "type": request.get("type"),
            "approvalId": request.get("id"),
            "approverId": request.get("approver_id"),
            "applicantId": request.get("applicant_id"),
            "status": request.get("status"),
            "link": self._link(f"/approvals/{request.get('id')}"),
            "content": APPROVAL_CREATED_TEMPLATE.render(**request),
        }
        try:
            response = self._send("POST", "/todos", payload)
            todo_id = _extract_todo_id(response.json())
        except (httpx.HTTPError, ValueError):
            logger.exception(f"Failed to create todo for approval {request.get('id')}")
            return None

        if not todo_id:
            logger.warning(f"Todo system returned no id for approval {request.get('id')}")
        return todo_id

    def on_completed(self, request: Dict[str, Any]) -> None:
        """Complete the approver's todo with the final status and result."""
        todo_id = request.get("external_todo_id")
        if not self.enabled or not todo_id:
            logger.info(f"No todo to complete for approval {request.get('id')}")
            return

        try:
            self._send("PATCH", f"/todos/{todo_id}", {
                "status": request.get("status"),
                "result": request.get("result"),
            })
        except httpx.HTTPError:
            logger.exception(f"Failed to complete todo {todo_id} for approval {request.get('id')}")

    def on_reassigned(self, request: Dict[str, Any], previous: Dict[str, Any]) -> Optional[str]:
        """
        Hand the approver's todo to the new approver.

        A request without a todo gets one created for the new approver.

        Returns:
            The todo id now tracking the request, or None
        """
        if not self.enabled:
            logger.info(f"Todo integration not configured, skipping reassignment for {request.get('id')}")
            return None
        todo_id = request.get("external_todo_id")
        if not todo_id:
            return self.on_created(request)

        try:
            self._send("PATCH", f"/todos/{todo_id}", {
                "approverId": request.get("approver_id"),
                "approverName": request.get("approver_name"),
                "previousApproverId": (previous or {}).get("id"),
                "status": request.get("status"),
            })
        except httpx.HTTPError:
            logger.exception(f"Failed to reassign todo {todo_id} for approval {request.get('id')}")
            return None
        return todo_id

    def send_reminder(self, record: Dict[str, Any], *, locale: str = "en") -> Optional[str]:
        """
        Post an overdue reminder todo for a borrow record.

        Returns:
            The todo id ("" when the todo system returned none), or None on failure
        """
        if not self.enabled:
            return None
        content = OVERDUE_TEMPLATES.get(locale, OVERDUE_TEMPLATES["en"]).render(**record)
        payload = {
            "title": content.splitlines()[0].strip("*"),
            "type": "borrow-overdue",
            "borrowRecordId": record.get("id"),
            "assetId": record.get("asset_id"),
            "content": content,
            "link": self._link(f"/assets/{record.get('asset_id')}"),
        }
        try:
            response = self._send("POST", "/todos", payload)
            return _extract_todo_id(response.json()) or ""
        except (httpx.HTTPError, ValueError):
            logger.exception(f"Failed to send overdue reminder for borrow record {record.get('id')}")
            return None


class QueuedNotificationPropagator:
    """
    Hands propagation to a Celery worker after commit.

    The creation todo id is stored by the worker, so ``on_created`` always
    returns None here.
    """

    def on_created(self, request: Dict[str, Any]) -> Optional[str]:
        from assethub.workers.notification_tasks import propagate_approval_created

        try:
            propagate_approval_created.delay(request)
        except Exception:
            logger.exception(f"Failed to enqueue creation notification for {request.get('id')}")
        return None

    def on_completed(self, request: Dict[str, Any]) -> None:
        from assethub.workers.notification_tasks import propagate_approval_completed

        try:
            propagate_approval_completed.delay(request)
        except Exception:
            logger.exception(f"Failed to enqueue completion notification for {request.get('id')}")

    def on_reassigned(self, request: Dict[str, Any], previous: Dict[str, Any]) -> Optional[str]:
        from assethub.workers.notification_tasks import propagate_approval_reassigned

        try:
            propagate_approval_reassigned.delay(request, previous)
        except Exception:
            logger.exception(f"Failed to enqueue reassignment notification for {request.get('id')}")
        return None


def _store_todo_id(session_factory: Callable[[], Session], request_id: str, todo_id: str) -> None:
    db = session_factory()
    try:
        db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).update(
            {ApprovalRequest.external_todo_id: todo_id}, synchronize_session=False
        )
        db.commit()
        logger.info(f"Stored todo {todo_id} for approval {request_id}")
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Failed to store todo id for approval {request_id}")
    finally:
        db.close()


def _with_stored_todo_id(session_factory: Callable[[], Session], request: Dict[str, Any]) -> Dict[str, Any]:
    """Fill in a todo id stored after the snapshot was taken."""
    if request.get("external_todo_id"):
        return request
    db = session_factory()
    try:
        stored = db.get(ApprovalRequest, request["id"])
        if stored and stored.external_todo_id:
            return {**request, "external_todo_id": stored.external_todo_id}
    finally:
        db.close()
    return request


def deliver_created(request: Dict[str, Any], propagator, session_factory: Callable[[], Session]) -> Optional[str]:
    """Create the approver's todo and store its id with a fresh session."""
    todo_id = propagator.on_created(request)
    if todo_id:
        _store_todo_id(session_factory, request["id"], todo_id)
    return todo_id


def deliver_completed(request: Dict[str, Any], propagator, session_factory: Callable[[], Session]) -> None:
    propagator.on_completed(_with_stored_todo_id(session_factory, request))


def deliver_reassigned(
    request: Dict[str, Any],
    previous: Dict[str, Any],
    propagator,
    session_factory: Callable[[], Session],
) -> Optional[str]:
    request = _with_stored_todo_id(session_factory, request)
    todo_id = propagator.on_reassigned(request, previous)
    if todo_id and todo_id != request.get("external_todo_id"):
        _store_todo_id(session_factory, request["id"], todo_id)
    return todo_id


class BackgroundNotificationPropagator:
    """
    Defers a direct propagator until after the HTTP response is sent.

    ``tasks`` is the request's ``BackgroundTasks``; plain functions added
    there run in the threadpool. The request's session is closed by then,
    so todo ids are stored through ``session_factory``.
    """

    def __init__(self, tasks, propagator, session_factory: Callable[[], Session]):
        self.tasks = tasks
        self.propagator = propagator
        self.session_factory = session_factory

    def on_created(self, request: Dict[str, Any]) -> Optional[str]:
        self.tasks.add_task(deliver_created, request, self.propagator, self.session_factory)
        return None

    def on_completed(self, request: Dict[str, Any]) -> None:
        self.tasks.add_task(deliver_completed, request, self.propagator, self.session_factory)

    def on_reassigned(self, request: Dict[str, Any], previous: Dict[str, Any]) -> Optional[str]:
        self.tasks.add_task(deliver_reassigned, request, previous, self.propagator, self.session_factory)
        return None


def build_propagator(settings: Optional[Settings] = None):
    """Pick the propagator for the configured notification mode."""
    settings = settings or get_settings()
    if not settings.todo_enabled:
        return NullNotificationPropagator()
    if settings.notification_mode == "queued":
        return QueuedNotificationPropagator()
    return TodoNotificationPropagator(settings)


def send_borrow_overdue_reminders(
    db: Session,
    propagator,
    *,
    reference_date: Union[str, date, datetime, None] = None,
    locale: str = "en",
) -> Dict[str, Any]:
    """
    Send one reminder per overdue borrow record not yet notified.

    Args:
        db: Database session
        propagator: Object with a ``send_reminder(record, locale=...)`` method
        reference_date: Day to compare planned return dates against
        locale: ``en`` or ``zh`` message text

    Returns:
        ``{"total", "sent", "skipped", "errors"}``
    """
    overdue = list_overdue_borrow_records(db, reference_date)
    summary: Dict[str, Any] = {"total": len(overdue), "sent": 0, "skipped": [], "errors": []}

    if not getattr(propagator, "enabled", True):
        logger.info("Todo integration not configured, skipping overdue reminders")
        summary["skipped"] = [record["id"] for record in overdue]
        return summary

    for record in overdue:
        if record["overdue_notified_at"]:
            summary["skipped"].append(record["id"])
            continue

        todo_id = propagator.send_reminder(record, locale=locale)
        if todo_id is None:
            summary["errors"].append(record["id"])
            continue

        try:
            mark_overdue_notified(db, record["id"])
            if todo_id:
                db.query(BorrowRecord).filter(BorrowRecord.id == record["id"]).update(
                    {BorrowRecord.external_todo_id: todo_id}, synchronize_session="fetch"
                )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"Failed to mark borrow record {record['id']} as notified")
            summary["errors"].append(record["id"])
            continue
        summary["sent"] += 1

    logger.info(
        f"Overdue reminders: {summary['sent']} sent, {len(summary['skipped'])} skipped, "
        f"{len(summary['errors'])} failed of {summary['total']}"
    )
    return summary
