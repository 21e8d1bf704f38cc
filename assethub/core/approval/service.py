"""Approval service for managing asset and consumable approval requests.

Provides the high-level API around the approval state machine: request
creation with approver resolution, transitions with exactly-once side
effects, querying, reassignment and post-commit notification.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any, List, Mapping, Protocol, Sequence, Tuple, Union

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assethub.core.action_config import (
    ActionConfigStore,
    ActionType,
    ApprovalType,
    approval_type_to_action_type,
    parse_approval_type,
)
from assethub.core.exceptions import AlreadyFinalized, ApproverResolutionError, NotFound, ValidationError
from assethub.core.roles import RoleDirectory
from assethub.db.base import utcnow
from assethub.db.models import (
    ApprovalCcRecipient,
    ApprovalHistory,
    ApprovalRequest,
    Asset,
    AssetOperation,
    Consumable,
    ConsumableOperation,
)

from .approver import ResolvedApprover, normalize_approver, resolve_approver
from .effects import (
    apply_side_effect,
    ensure_pending_inbound_operation,
    ensure_purchase_asset,
    mark_linked_operations_pending,
    settle_linked_operations,
)
from .machine import ApprovalStateMachine, parse_action
from .states import ApprovalAction, ApprovalStatus, OPERATION_OUTCOME, TransitionRule

logger = logging.getLogger(__name__)

# Approval types that imply an asset operation when the caller did not link one
ASSET_OPERATION_TYPES = {
    ApprovalType.PURCHASE,
    ApprovalType.INBOUND,
    ApprovalType.RECEIVE,
    ApprovalType.BORROW,
    ApprovalType.RETURN,
    ApprovalType.MAINTENANCE,
    ApprovalType.DISPOSE,
}

LIST_ROLES = ("my-requests", "my-tasks", "all")
VALID_STATUSES = {s.value for s in ApprovalStatus}
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

# Result recorded on requests whose action needs no approval
AUTO_APPROVED_RESULT = "无需审批"

Person = Mapping[str, Any]


class NotificationPropagator(Protocol):
    """Receives request snapshots after each committed change."""

    def on_created(self, request: Dict[str, Any]) -> Optional[str]: ...

    def on_completed(self, request: Dict[str, Any]) -> None: ...

    def on_reassigned(self, request: Dict[str, Any], previous: Dict[str, Optional[str]]) -> Optional[str]: ...


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _person(value: Optional[Person], field: str) -> Dict[str, Optional[str]]:
    person_id = _clean_text((value or {}).get("id"))
    if not person_id:
        raise ValidationError(f"Missing {field} id", field=field)
    return {"id": person_id, "name": _clean_text((value or {}).get("name"))}


def _as_list(value: Union[str, Sequence[str], None]) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v for v in (part.strip() for part in value.split(",")) if v]
    return [v for v in value if v]


def normalize_cc_recipients(cc: Optional[Sequence[Person]]) -> List[Dict[str, Optional[str]]]:
    """Trim CC entries, dropping empty ids and repeats of an earlier id."""
    seen = set()
    recipients = []
    for entry in cc or ():
        if not isinstance(entry, Mapping):
            raise ValidationError("CC entries must be objects", field="cc")
        user_id = _clean_text(entry.get("id"))
        if not user_id or user_id in seen:
            continue
        seen.add(user_id)
        recipients.append({"id": user_id, "name": _clean_text(entry.get("name"))})
    return recipients


class ApprovalService:
    """
    High-level service for managing approval requests.

    Handles:
    - Creating requests and resolving their approver
    - Performing transitions and applying side effects exactly once
    - Querying requests and their history
    - Reassigning approvers
    - Propagating changes to the notification system after commit

    Every mutating call commits its own transaction.
    """

    def __init__(
        self,
        db: Session,
        *,
        notifier: Optional[NotificationPropagator] = None,
        config_store: Optional[ActionConfigStore] = None,
        role_directory: Optional[RoleDirectory] = None,
    ):
        """
        Initialize the approval service.

        Args:
            db: Database session
            notifier: Optional notification propagator
            config_store: Action config store, defaults to one on ``db``
            role_directory: Role lookup, defaults to one on ``db``
        """
        self.db = db
        self.notifier = notifier
        self.config_store = config_store or ActionConfigStore(db)
        self.role_directory = role_directory or RoleDirectory(db)

    def create(
        self,
        *,
        type: Union[str, ApprovalType],
        title: str,
        applicant: Person,
        reason: Optional[str] = None,
        approver: Optional[Person] = None,
        asset_id: Optional[str] = None,
        consumable_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        consumable_operation_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        cc: Optional[Sequence[Person]] = None,
    ) -> Dict[str, Any]:
        """
        Create an approval request.

        When the action's config does not require approval the request is
        approved in the same transaction: the side effect is applied and the
        request is returned ``approved``, with no todo created.

        Args:
            type: Approval type
            title: Short description shown to the approver
            applicant: ``{"id", "name"}`` of the requesting user
            reason: Optional justification
            approver: Approver chosen by the applicant, if any
            asset_id: Asset subject
            consumable_id: Consumable subject
            operation_id: Pending asset operation to complete on approval
            consumable_operation_id: Pending stock movement to apply on approval
            metadata: Opaque metadata, including the operation template snapshot
            cc: Users copied on the request

        Returns:
            Dictionary with approval request details

        Raises:
            ValidationError: If the payload is malformed
            NotFound: If a referenced subject or operation does not exist
            ApproverResolutionError: If the approver cannot be resolved
            InsufficientStock: If an immediately applied stock movement cannot be applied
        """
        approval_type = parse_approval_type(type)
        title = _clean_text(title)
        if not title:
            raise ValidationError("Title is required", field="title")
        applicant = _person(applicant, "applicant")
        if asset_id and consumable_id:
            raise ValidationError("A request may target an asset or a consumable, not both", field="asset_id")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValidationError("Metadata must be an object", field="metadata")

        asset_id, consumable_id = self._check_references(
            asset_id, consumable_id, operation_id, consumable_operation_id
        )

        config = self.config_store.get(approval_type_to_action_type(approval_type))
        if config.requires_approval:
            resolved = resolve_approver(config, approver, role_lookup=self.role_directory.get)
            if resolved is None:
                logger.info(f"No approver determined for {approval_type.value} request, awaiting reassignment")
        else:
            resolved = normalize_approver(approver)

        now = utcnow()
        follow_ups: List[ApprovalRequest] = []
        try:
            request = self._insert_request(
                approval_type=approval_type,
                title=title,
                reason=_clean_text(reason),
                applicant=applicant,
                approver=resolved,
                asset_id=asset_id,
                consumable_id=consumable_id,
                operation_id=operation_id,
                consumable_operation_id=consumable_operation_id,
                metadata=metadata,
                cc=normalize_cc_recipients(cc),
                actor=applicant,
                at=now,
            )

            if not config.requires_approval:
                machine = ApprovalStateMachine(request.id, request.status)
                rule = machine.transition(
                    ApprovalAction.APPROVE, actor_id=applicant["id"], comment=AUTO_APPROVED_RESULT, at=now
                )
                request.status = rule.to_state.value
                request.result = AUTO_APPROVED_RESULT
                request.completed_at = now
                self.db.flush()
                follow_ups = self._complete_transition(
                    request,
                    rule,
                    action=ApprovalAction.APPROVE,
                    from_status=machine.last_transition["from_state"],
                    actor=applicant,
                    comment=AUTO_APPROVED_RESULT,
                    at=now,
                    extra={"autoApproved": True},
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Created approval request {request.id} ({request.type}, {request.status}) for {applicant['id']}")
        data = self._request_to_dict(request)
        if request.status == ApprovalStatus.PENDING.value:
            external_id = self._notify_created(data)
            if external_id:
                data["external_todo_id"] = external_id
        self._notify_follow_ups(follow_ups)
        return data

    def apply(
        self,
        request_id: str,
        action: Union[str, ApprovalAction],
        actor: Person,
        comment: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Perform a transition on a pending approval request.

        The request row is locked for the duration of the transaction and
        the status write only succeeds while the row is still pending, so
        the side effect is applied at most once per request.

        Args:
            request_id: ID of the approval request
            action: approve, reject or cancel
            actor: ``{"id", "name"}`` of the user performing the action
            comment: Optional outcome comment, stored as the result

        Returns:
            Updated approval request

        Raises:
            NotFound: If the request does not exist
            AlreadyFinalized: If the request is no longer pending
            ValidationError: If the action or actor is invalid
            InsufficientStock: If an approved stock movement cannot be applied
        """
        action = parse_action(action)
        actor = _person(actor, "actor")
        comment = _clean_text(comment)

        try:
            request = (
                self.db.query(ApprovalRequest)
                .filter(ApprovalRequest.id == request_id)
                .with_for_update()
                .first()
            )
            if not request:
                raise NotFound(f"Approval request {request_id} not found", request_id=request_id)

            machine = ApprovalStateMachine(request.id, request.status)
            now = utcnow()
            rule = machine.transition(action, actor_id=actor["id"], comment=comment, at=now)
            record = machine.last_transition

            values = {
                ApprovalRequest.status: rule.to_state.value,
                ApprovalRequest.result: record["result"],
                ApprovalRequest.updated_at: now,
                ApprovalRequest.completed_at: now,
            }
            if action is not ApprovalAction.CANCEL:
                values[ApprovalRequest.approver_id] = actor["id"]
                values[ApprovalRequest.approver_name] = actor["name"] or (
                    request.approver_name if request.approver_id == actor["id"] else None
                )

            updated = (
                self.db.query(ApprovalRequest)
                .filter(
                    ApprovalRequest.id == request.id,
                    ApprovalRequest.status == ApprovalStatus.PENDING.value,
                )
                .update(values, synchronize_session="fetch")
            )
            if updated != 1:
                raise AlreadyFinalized(
                    f"Approval request {request.id} was finalized concurrently",
                    request_id=request.id,
                )

            follow_ups = self._complete_transition(
                request,
                rule,
                action=action,
                from_status=record["from_state"],
                actor=actor,
                comment=comment,
                at=now,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Approval request {request.id} {record['from_state']} -> {rule.to_state.value} by {actor['id']}")
        data = self._request_to_dict(request)
        self._notify_completed(data)
        self._notify_follow_ups(follow_ups)
        return data

    def get(self, request_id: str) -> Dict[str, Any]:
        """Get an approval request by ID. Raises NotFound if unknown."""
        return self._request_to_dict(self._load(request_id))

    def list_requests(
        self,
        *,
        status: Union[str, Sequence[str], None] = None,
        type: Union[str, Sequence[str], None] = None,
        applicant_id: Optional[str] = None,
        approver_id: Optional[str] = None,
        asset_id: Optional[str] = None,
        consumable_id: Optional[str] = None,
        operation_id: Optional[str] = None,
        consumable_operation_id: Optional[str] = None,
        role: Optional[str] = None,
        user_id: Optional[str] = None,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> Dict[str, Any]:
        """
        List approval requests, newest first.

        Returns:
            ``{"items", "total", "page", "page_size"}``
        """
        query = self.db.query(ApprovalRequest)

        statuses = _as_list(status)
        if statuses:
            for value in statuses:
                if value not in VALID_STATUSES:
                    self._bad_filter("status", value)
            query = query.filter(ApprovalRequest.status.in_(statuses))

        types = _as_list(type)
        if types:
            query = query.filter(ApprovalRequest.type.in_([parse_approval_type(t).value for t in types]))

        for column, value in (
            (ApprovalRequest.applicant_id, applicant_id),
            (ApprovalRequest.approver_id, approver_id),
            (ApprovalRequest.asset_id, asset_id),
            (ApprovalRequest.consumable_id, consumable_id),
            (ApprovalRequest.operation_id, operation_id),
            (ApprovalRequest.consumable_operation_id, consumable_operation_id),
        ):
            if value:
                query = query.filter(column == value)

        if role:
            if role not in LIST_ROLES:
                self._bad_filter("role", role)
            if not user_id:
                raise ValidationError("user_id is required with a role filter", field="user_id")
            if role == "my-requests":
                query = query.filter(ApprovalRequest.applicant_id == user_id)
            elif role == "my-tasks":
                query = query.filter(ApprovalRequest.approver_id == user_id)
            else:
                query = query.filter(or_(
                    ApprovalRequest.applicant_id == user_id,
                    ApprovalRequest.approver_id == user_id,
                    ApprovalRequest.cc_recipients.any(ApprovalCcRecipient.user_id == user_id),
                ))

        page = max(int(page or 1), 1)
        page_size = min(max(int(page_size or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

        total = query.count()
        rows = (
            query.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {
            "items": [self._request_to_dict(r) for r in rows],
            "total": total,
            "page": page,
            "page_size": page_size,
        }

    def history(self, request_id: str) -> List[Dict[str, Any]]:
        """Get the audit trail of a request, oldest first."""
        self._load(request_id)
        entries = (
            self.db.query(ApprovalHistory)
            .filter(ApprovalHistory.request_id == request_id)
            .order_by(ApprovalHistory.created_at.asc())
            .all()
        )
        return [self._history_to_dict(h) for h in entries]

    def reassign(self, request_id: str, approver: Person, actor: Person) -> Dict[str, Any]:
        """
        Hand a pending request to another approver.

        Raises:
            NotFound: If the request does not exist
            AlreadyFinalized: If the request is no longer pending
            ValidationError: If the new approver id is empty
        """
        new_approver = _person(approver, "approver")
        actor = _person(actor, "actor")

        try:
            request = (
                self.db.query(ApprovalRequest)
                .filter(ApprovalRequest.id == request_id)
                .with_for_update()
                .first()
            )
            if not request:
                raise NotFound(f"Approval request {request_id} not found", request_id=request_id)
            if request.status != ApprovalStatus.PENDING.value:
                raise AlreadyFinalized(
                    f"Approval request {request.id} is already {request.status}",
                    request_id=request.id,
                    status=request.status,
                )

            now = utcnow()
            previous = {"id": request.approver_id, "name": request.approver_name}
            if previous["id"] != new_approver["id"]:
                metadata = dict(request.extra_data or {})
                reassignments = list(metadata.get("approverReassignments") or [])
                reassignments.append({
                    "at": now.isoformat(),
                    "from": previous,
                    "to": new_approver,
                    "actor": actor,
                })
                metadata["approverReassignments"] = reassignments
                request.extra_data = metadata

            request.approver_id = new_approver["id"]
            request.approver_name = new_approver["name"]
            request.updated_at = now

            self._record_history(
                request,
                action="reassign",
                from_status=request.status,
                actor=actor,
                comment=None,
                at=now,
                extra={"from": previous, "to": new_approver},
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Approval request {request.id} reassigned from {previous['id']} to {new_approver['id']}")
        data = self._request_to_dict(request)
        if previous["id"] != new_approver["id"]:
            external_id = self._notify_reassigned(data, previous)
            if external_id:
                data["external_todo_id"] = external_id
        return data

    def pending_count(self, user_id: str) -> int:
        """Number of pending requests awaiting ``user_id``."""
        return (
            self.db.query(func.count(ApprovalRequest.id))
            .filter(
                ApprovalRequest.status == ApprovalStatus.PENDING.value,
                ApprovalRequest.approver_id == user_id,
            )
            .scalar()
            or 0
        )

    def _load(self, request_id: str) -> ApprovalRequest:
        request = self.db.get(ApprovalRequest, request_id)
        if not request:
            raise NotFound(f"Approval request {request_id} not found", request_id=request_id)
        return request

    @staticmethod
    def _bad_filter(field: str, value: str):
        raise ValidationError(f"Unsupported {field} filter: {value}", field=field)

    def _check_references(
        self,
        asset_id: Optional[str],
        consumable_id: Optional[str],
        operation_id: Optional[str],
        consumable_operation_id: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Validate the subject and linked operations of a new request.

        A linked operation without its subject adopts the operation's
        subject, so approving the request always runs the matching applier.

        Returns:
            ``(asset_id, consumable_id)`` after derivation

        Raises:
            NotFound: If a referenced row does not exist
            ValidationError: If an operation belongs to another subject
        """
        if operation_id and consumable_operation_id:
            raise ValidationError(
                "A request may link an asset operation or a consumable operation, not both",
                field="operation_id",
            )
        if operation_id:
            if consumable_id:
                raise ValidationError(
                    f"Asset operation {operation_id} cannot be linked to consumable {consumable_id}",
                    field="operation_id",
                )
            operation = self.db.get(AssetOperation, operation_id)
            if not operation:
                raise NotFound(f"Asset operation {operation_id} not found", operation_id=operation_id)
            if asset_id and operation.asset_id != asset_id:
                raise ValidationError(
                    f"Operation {operation_id} does not belong to asset {asset_id}", field="operation_id"
                )
            asset_id = operation.asset_id
        if consumable_operation_id:
            if asset_id:
                raise ValidationError(
                    f"Consumable operation {consumable_operation_id} cannot be linked to asset {asset_id}",
                    field="consumable_operation_id",
                )
            operation = self.db.get(ConsumableOperation, consumable_operation_id)
            if not operation:
                raise NotFound(
                    f"Consumable operation {consumable_operation_id} not found",
                    operation_id=consumable_operation_id,
                )
            if consumable_id and operation.consumable_id != consumable_id:
                raise ValidationError(
                    f"Operation {consumable_operation_id} does not belong to consumable {consumable_id}",
                    field="consumable_operation_id",
                )
            consumable_id = operation.consumable_id
        if asset_id and not self.db.get(Asset, asset_id):
            raise NotFound(f"Asset {asset_id} not found", asset_id=asset_id)
        if consumable_id and not self.db.get(Consumable, consumable_id):
            raise NotFound(f"Consumable {consumable_id} not found", consumable_id=consumable_id)
        return asset_id, consumable_id

    def _insert_request(
        self,
        *,
        approval_type: ApprovalType,
        title: str,
        reason: Optional[str],
        applicant: Dict[str, Optional[str]],
        approver: Optional[ResolvedApprover],
        asset_id: Optional[str],
        consumable_id: Optional[str],
        operation_id: Optional[str],
        consumable_operation_id: Optional[str],
        metadata: Optional[Dict[str, Any]],
        cc: List[Dict[str, Optional[str]]],
        actor: Dict[str, Optional[str]],
        at: datetime,
    ) -> ApprovalRequest:
        """Persist a pending request with its submit entry. Does not commit."""
        request = ApprovalRequest(
            asset_id=asset_id,
            consumable_id=consumable_id,
            operation_id=operation_id,
            consumable_operation_id=consumable_operation_id,
            type=approval_type.value,
            status=ApprovalStatus.PENDING.value,
            title=title,
            reason=reason,
            applicant_id=applicant["id"],
            applicant_name=applicant["name"],
            approver_id=approver.id if approver else None,
            approver_name=approver.name if approver else None,
            extra_data=dict(metadata or {}),
            cc_recipients=[
                ApprovalCcRecipient(user_id=person["id"], user_name=person["name"], created_at=at)
                for person in cc
            ],
            created_at=at,
            updated_at=at,
        )
        self.db.add(request)
        self.db.flush()

        if asset_id and not operation_id and approval_type in ASSET_OPERATION_TYPES:
            request.operation_id = self._create_asset_operation(request, applicant, metadata).id

        mark_linked_operations_pending(self.db, request)
        self._record_history(
            request,
            action="submit",
            from_status=None,
            actor=actor,
            comment=reason,
            at=at,
        )
        return request

    def _complete_transition(
        self,
        request: ApprovalRequest,
        rule: TransitionRule,
        *,
        action: ApprovalAction,
        from_status: str,
        actor: Dict[str, Optional[str]],
        comment: Optional[str],
        at: datetime,
        extra: Optional[Dict[str, Any]] = None,
    ) -> List[ApprovalRequest]:
        """
        Apply the side effect of a transition already written to ``request``.

        Returns:
            Requests opened as follow-ups, to be announced after commit
        """
        follow_ups: List[ApprovalRequest] = []
        effect: Dict[str, Any] = {}
        if rule.applies_side_effect:
            ensure_purchase_asset(self.db, request)
            effect = apply_side_effect(self.db, request)
            inbound = ensure_pending_inbound_operation(self.db, request, actor)
            if inbound is not None:
                effect["inbound_operation_id"] = inbound.id
                follow_up = self._open_inbound_approval(request, inbound, actor, at)
                if follow_up is not None:
                    effect["inbound_approval_id"] = follow_up.id
                    follow_ups.append(follow_up)
        settle_linked_operations(self.db, request, OPERATION_OUTCOME[rule.to_state])

        details = dict(extra or {})
        if effect:
            details["effect"] = effect
        self._record_history(
            request,
            action=action.value,
            from_status=from_status,
            actor=actor,
            comment=comment,
            at=at,
            extra=details or None,
        )
        return follow_ups

    def _open_inbound_approval(
        self,
        purchase: ApprovalRequest,
        operation: AssetOperation,
        actor: Dict[str, Optional[str]],
        at: datetime,
    ) -> Optional[ApprovalRequest]:
        """
        Open the inbound confirmation for an approved purchase.

        Only when inbound needs approval and no request links the operation
        yet. The inbound default approver wins; otherwise the purchase
        approver, then the acting user.
        """
        config = self.config_store.get(ActionType.INBOUND)
        if not config.requires_approval:
            return None
        existing = (
            self.db.query(ApprovalRequest.id)
            .filter(ApprovalRequest.operation_id == operation.id, ApprovalRequest.type == ApprovalType.INBOUND.value)
            .first()
        )
        if existing:
            return None

        try:
            approver = resolve_approver(config, None, role_lookup=self.role_directory.get)
        except ApproverResolutionError:
            approver = None
        if approver is None:
            approver = normalize_approver(
                {"id": purchase.approver_id, "name": purchase.approver_name}
                if purchase.approver_id else actor
            )

        metadata = dict(operation.extra_data or {})
        metadata["configSnapshot"] = {
            "id": config.id.value,
            "requiresApproval": config.requires_approval,
            "defaultApproverType": config.default_approver_type.value,
            "allowOverride": config.allow_override,
        }
        follow_up = self._insert_request(
            approval_type=ApprovalType.INBOUND,
            title=f"入库确认 - {purchase.title}",
            reason=purchase.reason,
            applicant={"id": purchase.applicant_id, "name": purchase.applicant_name},
            approver=approver,
            asset_id=purchase.asset_id,
            consumable_id=None,
            operation_id=operation.id,
            consumable_operation_id=None,
            metadata=metadata,
            cc=[],
            actor=actor,
            at=at,
        )
        logger.info(f"Opened inbound approval {follow_up.id} for purchase {purchase.id}")
        return follow_up

    def _create_asset_operation(
        self,
        request: ApprovalRequest,
        applicant: Dict[str, Optional[str]],
        metadata: Optional[Dict[str, Any]],
    ) -> AssetOperation:
        operation = AssetOperation(
            asset_id=request.asset_id,
            type=request.type,
            actor=applicant["name"] or applicant["id"],
            description=request.title,
            status="pending",
            extra_data={
                **(metadata or {}),
                "autoGeneratedFromApprovalId": request.id,
                "autoGeneratedFromApprovalType": request.type,
                "sourceApprovalTitle": request.title,
                "applicant": applicant,
            },
        )
        self.db.add(operation)
        self.db.flush()
        logger.debug(f"Created asset operation {operation.id} for approval {request.id}")
        return operation

    def _record_history(
        self,
        request: ApprovalRequest,
        *,
        action: str,
        from_status: Optional[str],
        actor: Dict[str, Optional[str]],
        comment: Optional[str],
        at: datetime,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ApprovalHistory:
        entry = ApprovalHistory(
            request_id=request.id,
            action=action,
            from_status=from_status,
            to_status=request.status,
            actor_id=actor["id"],
            actor_name=actor["name"],
            comment=comment,
            extra_data=extra or {},
            created_at=at,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def _notify_created(self, data: Dict[str, Any]) -> Optional[str]:
        if not self.notifier:
            return None
        try:
            external_id = self.notifier.on_created(data)
        except Exception:
            logger.exception(f"Creation notification failed for approval {data['id']}")
            return None
        if not external_id:
            return None
        return self._store_external_id(data["id"], external_id)

    def _notify_completed(self, data: Dict[str, Any]) -> None:
        if not self.notifier:
            return
        try:
            self.notifier.on_completed(data)
        except Exception:
            logger.exception(f"Completion notification failed for approval {data['id']}")

    def _notify_reassigned(self, data: Dict[str, Any], previous: Dict[str, Optional[str]]) -> Optional[str]:
        if not self.notifier:
            return None
        try:
            external_id = self.notifier.on_reassigned(data, previous)
        except Exception:
            logger.exception(f"Reassignment notification failed for approval {data['id']}")
            return None
        if not external_id or str(external_id) == data.get("external_todo_id"):
            return None
        return self._store_external_id(data["id"], external_id)

    def _notify_follow_ups(self, requests: List[ApprovalRequest]) -> None:
        for request in requests:
            self._notify_created(self._request_to_dict(request))

    def _store_external_id(self, request_id: str, external_id: Any) -> Optional[str]:
        try:
            self.db.query(ApprovalRequest).filter(ApprovalRequest.id == request_id).update(
                {ApprovalRequest.external_todo_id: str(external_id)}, synchronize_session="fetch"
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to store external todo id for approval {request_id}")
            return None
        return str(external_id)

    def _request_to_dict(self, request: ApprovalRequest) -> Dict[str, Any]:
        """Convert an ApprovalRequest model to dictionary."""
        return {
            "id": request.id,
            "asset_id": request.asset_id,
            "consumable_id": request.consumable_id,
            "operation_id": request.operation_id,
            "consumable_operation_id": request.consumable_operation_id,
            "type": request.type,
            "status": request.status,
            "title": request.title,
            "reason": request.reason,
            "applicant_id": request.applicant_id,
            "applicant_name": request.applicant_name,
            "approver_id": request.approver_id,
            "approver_name": request.approver_name,
            "result": request.result,
            "external_todo_id": request.external_todo_id,
            "metadata": request.extra_data or {},
            "cc": [{"id": cc.user_id, "name": cc.user_name} for cc in request.cc_recipients],
            "created_at": request.created_at.isoformat() if request.created_at else None,
            "updated_at": request.updated_at.isoformat() if request.updated_at else None,
            "completed_at": request.completed_at.isoformat() if request.completed_at else None,
        }

    def _history_to_dict(self, entry: ApprovalHistory) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "request_id": entry.request_id,
            "action": entry.action,
            "from_status": entry.from_status,
            "to_status": entry.to_status,
            "actor_id": entry.actor_id,
            "actor_name": entry.actor_name,
            "comment": entry.comment,
            "metadata": entry.extra_data or {},
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
