"""Approval workflow API endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from assethub.api.deps import get_approval_service, get_current_actor, get_optional_actor
from assethub.api.schemas.common import PaginatedResponse, Person
from assethub.core.approval import ApprovalService
from assethub.core.exceptions import ValidationError

router = APIRouter(prefix="/approvals", tags=["approvals"])


# Schemas
class ApprovalRequestResponse(BaseModel):
    id: str
    asset_id: Optional[str] = None
    consumable_id: Optional[str] = None
    operation_id: Optional[str] = None
    consumable_operation_id: Optional[str] = None
    type: str
    status: str
    title: str
    reason: Optional[str] = None
    applicant_id: str
    applicant_name: Optional[str] = None
    approver_id: Optional[str] = None
    approver_name: Optional[str] = None
    result: Optional[str] = None
    external_todo_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    cc: List[Person] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    completed_at: Optional[str] = None


class ApprovalHistoryResponse(BaseModel):
    id: str
    request_id: str
    action: str
    from_status: Optional[str] = None
    to_status: str
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    comment: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None


class ApprovalCreate(BaseModel):
    type: str
    title: str = Field(..., min_length=1, max_length=255)
    reason: Optional[str] = None
    applicant: Optional[Person] = None
    approver: Optional[Person] = None
    asset_id: Optional[str] = None
    consumable_id: Optional[str] = None
    operation_id: Optional[str] = None
    consumable_operation_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    cc: List[Person] = Field(default_factory=list)


class ApprovalActionBody(BaseModel):
    action: str
    comment: Optional[str] = None


class ApproverReassign(BaseModel):
    approver: Person


class PendingCountResponse(BaseModel):
    user_id: str
    count: int


# Endpoints
@router.get("", response_model=PaginatedResponse[ApprovalRequestResponse])
async def list_approvals(
    service: ApprovalService = Depends(get_approval_service),
    actor: Optional[dict] = Depends(get_optional_actor),
    status_filter: Optional[List[str]] = Query(None, alias="status"),
    type_filter: Optional[List[str]] = Query(None, alias="type"),
    applicant_id: Optional[str] = None,
    approver_id: Optional[str] = None,
    asset_id: Optional[str] = None,
    consumable_id: Optional[str] = None,
    operation_id: Optional[str] = None,
    consumable_operation_id: Optional[str] = None,
    role: Optional[str] = Query(None, description="my-requests, my-tasks or all"),
    user_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
):
    """List approval requests, newest first."""
    if role and not user_id and actor:
        user_id = actor["id"]

    result = service.list_requests(
        status=status_filter,
        type=type_filter,
        applicant_id=applicant_id,
        approver_id=approver_id,
        asset_id=asset_id,
        consumable_id=consumable_id,
        operation_id=operation_id,
        consumable_operation_id=consumable_operation_id,
        role=role,
        user_id=user_id,
        page=page,
        page_size=page_size,
    )
    return PaginatedResponse.create(
        items=[ApprovalRequestResponse(**item) for item in result["items"]],
        total=result["total"],
        page=result["page"],
        page_size=result["page_size"],
    )


@router.post("", response_model=ApprovalRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_approval(
    body: ApprovalCreate,
    service: ApprovalService = Depends(get_approval_service),
    actor: dict = Depends(get_current_actor),
):
    """
    Submit an approval request. The applicant defaults to the caller.

    Actions that need no approval come back already approved.
    """
    applicant = body.applicant.model_dump() if body.applicant else actor
    result = service.create(
        type=body.type,
        title=body.title,
        reason=body.reason,
        applicant=applicant,
        approver=body.approver.model_dump() if body.approver else None,
        asset_id=body.asset_id,
        consumable_id=body.consumable_id,
        operation_id=body.operation_id,
        consumable_operation_id=body.consumable_operation_id,
        metadata=body.metadata,
        cc=[person.model_dump() for person in body.cc],
    )
    return ApprovalRequestResponse(**result)


@router.get("/pending-count", response_model=PendingCountResponse)
async def pending_count(
    service: ApprovalService = Depends(get_approval_service),
    actor: Optional[dict] = Depends(get_optional_actor),
    user_id: Optional[str] = None,
):
    """Number of pending requests awaiting a user (defaults to the caller)."""
    user_id = user_id or (actor["id"] if actor else None)
    if not user_id:
        raise ValidationError("user_id is required", field="user_id")
    return PendingCountResponse(user_id=user_id, count=service.pending_count(user_id))


@router.get("/{request_id}", response_model=ApprovalRequestResponse)
async def get_approval(
    request_id: str,
    service: ApprovalService = Depends(get_approval_service),
):
    """Get a specific approval request."""
    return ApprovalRequestResponse(**service.get(request_id))


@router.get("/{request_id}/history", response_model=List[ApprovalHistoryResponse])
async def get_approval_history(
    request_id: str,
    service: ApprovalService = Depends(get_approval_service),
):
    """Get the submission, transition and reassignment history of a request."""
    return [ApprovalHistoryResponse(**entry) for entry in service.history(request_id)]


@router.post("/{request_id}/actions", response_model=ApprovalRequestResponse)
async def apply_action(
    request_id: str,
    body: ApprovalActionBody,
    service: ApprovalService = Depends(get_approval_service),
    actor: dict = Depends(get_current_actor),
):
    """Approve, reject or cancel a pending request."""
    result = service.apply(request_id, body.action, actor, comment=body.comment)
    return ApprovalRequestResponse(**result)


@router.post("/{request_id}/approver", response_model=ApprovalRequestResponse)
async def reassign_approver(
    request_id: str,
    body: ApproverReassign,
    service: ApprovalService = Depends(get_approval_service),
    actor: dict = Depends(get_current_actor),
):
    """Hand a pending request to another approver."""
    result = service.reassign(request_id, body.approver.model_dump(), actor)
    return ApprovalRequestResponse(**result)
