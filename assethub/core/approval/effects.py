"""Side-effect appliers run when an approval request is approved.

Each request has exactly one subject kind (asset, consumable or none) and
the applier is chosen from a closed table keyed by that kind. Appliers run
inside the caller's transaction and never commit; raising aborts the
approval.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from sqlalchemy.orm import Session

from assethub.core.exceptions import InsufficientStock, NotFound, ValidationError
from assethub.core.template_metadata import (
    extract_owner,
    extract_planned_return_date,
    first_metadata_value,
)
from assethub.db.base import utcnow
from assethub.db.models import (
    ApprovalRequest,
    Asset,
    AssetOperation,
    Consumable,
    ConsumableOperation,
)
from assethub.services.borrow_tracking import mark_borrow_returned, upsert_borrow_record

from .states import OperationStatus

logger = logging.getLogger(__name__)


class SubjectKind(str, Enum):
    ASSET = "asset"
    CONSUMABLE = "consumable"
    NONE = "none"


# Asset status after an approved action; unlisted actions leave it unchanged
ASSET_STATUS_BY_ACTION: Dict[str, str] = {
    "receive": "in-use",
    "borrow": "in-use",
    "return": "idle",
    "inbound": "idle",
    "maintenance": "maintenance",
    "dispose": "retired",
}


def subject_kind(request: ApprovalRequest) -> SubjectKind:
    if request.asset_id and request.consumable_id:
        raise ValidationError(
            "An approval request cannot target both an asset and a consumable",
            request_id=request.id,
        )
    if request.asset_id:
        return SubjectKind.ASSET
    if request.consumable_id:
        return SubjectKind.CONSUMABLE
    return SubjectKind.NONE


def resolve_consumable_status(
    *,
    quantity: int,
    reserved_quantity: int,
    safety_stock: int,
    current_status: Optional[str] = None,
) -> str:
    """Derive the stock status from the quantities. Archived items stay archived."""
    if current_status == "archived":
        return "archived"
    if quantity <= 0:
        return "out-of-stock"
    if reserved_quantity >= quantity:
        return "reserved"
    if safety_stock > 0 and quantity <= safety_stock:
        return "low-stock"
    return "in-stock"


def apply_asset_effect(db: Session, request: ApprovalRequest) -> Dict[str, Any]:
    """
    Apply an approved asset action.

    Args:
        db: Database session (transaction owned by the caller)
        request: The approval request being approved

    Returns:
        Summary of the changes made

    Raises:
        NotFound: If the asset or linked operation does not exist
    """
    asset = db.get(Asset, request.asset_id, with_for_update=True)
    if not asset:
        raise NotFound(f"Asset {request.asset_id} not found", asset_id=request.asset_id)

    operation = None
    if request.operation_id:
        operation = db.get(AssetOperation, request.operation_id)
        if not operation:
            raise NotFound(f"Asset operation {request.operation_id} not found", operation_id=request.operation_id)

    action = operation.type if operation else request.type
    sources = (operation.extra_data if operation else None, request.extra_data)
    summary: Dict[str, Any] = {"subject": SubjectKind.ASSET.value, "asset_id": asset.id, "previous_status": asset.status}

    target_status = ASSET_STATUS_BY_ACTION.get(action)
    if target_status:
        asset.status = target_status
        owner = first_metadata_value(extract_owner, *sources)
        if owner:
            asset.owner = owner
        asset.updated_at = utcnow()
    summary["status"] = asset.status

    if operation and operation.status != OperationStatus.DONE.value:
        operation.status = OperationStatus.DONE.value
        operation.updated_at = utcnow()

    if action == "borrow":
        record = upsert_borrow_record(
            db,
            asset_id=asset.id,
            borrow_operation_id=operation.id if operation else request.id,
            borrower=first_metadata_value(extract_owner, *sources),
            planned_return_date=first_metadata_value(extract_planned_return_date, *sources),
        )
        summary["borrow_record_id"] = record.id
    elif action == "return":
        record = mark_borrow_returned(
            db,
            asset_id=asset.id,
            return_operation_id=operation.id if operation else request.id,
        )
        summary["borrow_record_id"] = record.id if record else None

    db.flush()
    logger.info(f"Asset {asset.id} {summary['previous_status']} -> {asset.status} via {action} ({request.id})")
    return summary


def apply_consumable_effect(db: Session, request: ApprovalRequest) -> Dict[str, Any]:
    """
    Apply the stock deltas of an approved consumable operation.

    Raises:
        NotFound: If the consumable or operation does not exist
        InsufficientStock: If quantity would drop below zero
        ValidationError: If the reserved quantity would become invalid
    """
    summary: Dict[str, Any] = {"subject": SubjectKind.CONSUMABLE.value, "consumable_id": request.consumable_id}
    if not request.consumable_operation_id:
        consumable = db.get(Consumable, request.consumable_id)
        if not consumable:
            raise NotFound(f"Consumable {request.consumable_id} not found", consumable_id=request.consumable_id)
        logger.info(f"Approval {request.id} has no consumable operation, stock unchanged")
        summary["applied"] = False
        return summary

    operation = db.get(ConsumableOperation, request.consumable_operation_id)
    if not operation:
        raise NotFound(
            f"Consumable operation {request.consumable_operation_id} not found",
            operation_id=request.consumable_operation_id,
        )
    if operation.consumable_id != request.consumable_id:
        raise ValidationError(
            f"Operation {operation.id} does not belong to consumable {request.consumable_id}",
            operation_id=operation.id,
        )
    summary["operation_id"] = operation.id

    if operation.status == OperationStatus.DONE.value:
        logger.info(f"Consumable operation {operation.id} already applied, skipping")
        summary["applied"] = False
        return summary

    consumable = db.get(Consumable, operation.consumable_id, with_for_update=True)
    if not consumable:
        raise NotFound(f"Consumable {operation.consumable_id} not found", consumable_id=operation.consumable_id)

    quantity = consumable.quantity + (operation.quantity_delta or 0)
    reserved = consumable.reserved_quantity + (operation.reserved_delta or 0)

    if quantity < 0:
        raise InsufficientStock(
            f"Insufficient stock for {consumable.name}: have {consumable.quantity}, "
            f"change {operation.quantity_delta}",
            consumable_id=consumable.id,
            available=consumable.quantity,
            requested=operation.quantity_delta,
        )
    if reserved < 0:
        raise ValidationError("Reserved quantity cannot be negative", consumable_id=consumable.id)
    if reserved > quantity:
        raise ValidationError("Reserved quantity cannot exceed quantity", consumable_id=consumable.id)

    previous = consumable.quantity
    now = utcnow()
    consumable.quantity = quantity
    consumable.reserved_quantity = reserved
    consumable.status = resolve_consumable_status(
        quantity=quantity,
        reserved_quantity=reserved,
        safety_stock=consumable.safety_stock or 0,
        current_status=consumable.status,
    )
    consumable.updated_at = now
    operation.status = OperationStatus.DONE.value
    operation.updated_at = now
    db.flush()

    logger.info(f"Consumable {consumable.id} quantity {previous} -> {quantity} via {operation.type} ({request.id})")
    summary.update(applied=True, quantity=quantity, reserved_quantity=reserved, status=consumable.status)
    return summary


def apply_no_effect(db: Session, request: ApprovalRequest) -> Dict[str, Any]:
    return {"subject": SubjectKind.NONE.value}


Applier = Callable[[Session, ApprovalRequest], Dict[str, Any]]


def build_applier_table(appliers: Mapping[SubjectKind, Applier]) -> Dict[SubjectKind, Applier]:
    """Freeze the dispatch table, requiring an applier for every subject kind."""
    missing = [kind.value for kind in SubjectKind if kind not in appliers]
    if missing:
        raise ValueError(f"No side-effect applier registered for: {', '.join(missing)}")
    return dict(appliers)


APPLIERS = build_applier_table({
    SubjectKind.ASSET: apply_asset_effect,
    SubjectKind.CONSUMABLE: apply_consumable_effect,
    SubjectKind.NONE: apply_no_effect,
})


def apply_side_effect(db: Session, request: ApprovalRequest) -> Dict[str, Any]:
    """Run the applier for the request's subject."""
    return APPLIERS[subject_kind(request)](db, request)


def purchase_asset_mode(metadata: Optional[Mapping[str, Any]]) -> Optional[str]:
    """``new`` or ``existing`` from ``purchaseAsset.mode`` (or legacy ``purchaseAssetMode``)."""
    if not isinstance(metadata, Mapping):
        return None
    purchase_asset = metadata.get("purchaseAsset")
    if isinstance(purchase_asset, Mapping) and purchase_asset.get("mode") in ("new", "existing"):
        return purchase_asset["mode"]
    legacy = metadata.get("purchaseAssetMode")
    return legacy if legacy in ("new", "existing") else None


def ensure_purchase_asset(db: Session, request: ApprovalRequest) -> Optional[Asset]:
    """
    Create the purchased asset for an approved purchase without a subject.

    The asset is built from ``metadata.newAsset`` and starts ``pending``
    until its inbound operation completes. Nothing is created when the
    purchase targets an existing asset or carries no asset details.

    Returns:
        The new asset, or None
    """
    if request.type != "purchase" or request.asset_id or request.consumable_id:
        return None
    metadata = request.extra_data or {}
    if purchase_asset_mode(metadata) == "existing":
        return None
    details = metadata.get("newAsset")
    if not isinstance(details, Mapping) or not details:
        return None

    def text(key: str) -> Optional[str]:
        value = details.get(key)
        return value.strip() if isinstance(value, str) and value.strip() else None

    asset = Asset(
        name=text("name") or f"New Asset - {request.title}",
        category=text("category") or "general",
        status="pending",
        owner=text("owner") or request.applicant_name or request.applicant_id,
        location=text("location") or "To Be Assigned",
        company_code=text("companyCode") or "DEFAULT",
    )
    db.add(asset)
    db.flush()
    request.asset_id = asset.id
    db.flush()
    logger.info(f"Created asset {asset.id} for purchase approval {request.id}")
    return asset


def ensure_pending_inbound_operation(
    db: Session,
    request: ApprovalRequest,
    actor: Mapping[str, Any],
) -> Optional[AssetOperation]:
    """
    Queue the inbound step that follows an approved purchase.

    One pending ``inbound`` operation is kept per purchase request, marked
    with ``autoGeneratedFromApprovalId``; an existing one is returned as is.
    """
    if request.type != "purchase" or not request.asset_id:
        return None
    if purchase_asset_mode(request.extra_data) == "existing":
        return None

    for operation in (
        db.query(AssetOperation)
        .filter(AssetOperation.asset_id == request.asset_id, AssetOperation.type == "inbound")
        .all()
    ):
        if (operation.extra_data or {}).get("autoGeneratedFromApprovalId") == request.id:
            return operation

    metadata: Dict[str, Any] = {
        "autoGeneratedFromApprovalId": request.id,
        "autoGeneratedFromApprovalType": request.type,
        "sourceApprovalTitle": request.title,
        "applicant": {"id": request.applicant_id, "name": request.applicant_name},
        "ownerId": request.applicant_id,
        "ownerName": request.applicant_name,
    }
    template = (request.extra_data or {}).get("operationTemplate")
    if template:
        metadata["operationTemplate"] = template

    operation = AssetOperation(
        asset_id=request.asset_id,
        type="inbound",
        actor=actor.get("name") or actor.get("id") or "system",
        status=OperationStatus.PENDING.value,
        description=f"待入库 · {request.title}",
        extra_data=metadata,
    )
    db.add(operation)
    db.flush()
    logger.info(f"Queued inbound operation {operation.id} for purchase {request.id}")
    return operation


def settle_linked_operations(db: Session, request: ApprovalRequest, outcome: OperationStatus) -> None:
    """Move linked operations to their final status. Done operations are never reopened."""
    now = utcnow()
    for model, op_id in (
        (AssetOperation, request.operation_id),
        (ConsumableOperation, request.consumable_operation_id),
    ):
        if not op_id:
            continue
        operation = db.get(model, op_id)
        if not operation:
            continue
        if operation.status == outcome.value:
            continue
        if operation.status == OperationStatus.DONE.value:
            logger.warning(f"Operation {op_id} is already done, leaving it unchanged")
            continue
        operation.status = outcome.value
        operation.updated_at = now
    db.flush()


def mark_linked_operations_pending(db: Session, request: ApprovalRequest) -> None:
    """Hold linked operations as pending while the request awaits a decision."""
    for model, op_id in (
        (AssetOperation, request.operation_id),
        (ConsumableOperation, request.consumable_operation_id),
    ):
        if not op_id:
            continue
        operation = db.get(model, op_id)
        if not operation:
            raise NotFound(f"Operation {op_id} not found", operation_id=op_id)
        if operation.status != OperationStatus.DONE.value:
            operation.status = OperationStatus.PENDING.value
    db.flush()
