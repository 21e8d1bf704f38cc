"""Action configuration API endpoints."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from assethub.api.deps import get_db
from assethub.api.schemas.common import Person
from assethub.core.action_config import ActionConfigStore
from assethub.core.approval import resolve_approver
from assethub.core.roles import RoleDirectory

router = APIRouter(prefix="/config/approvals", tags=["action-configs"])


# Schemas
class ActionConfigResponse(BaseModel):
    id: str
    label_zh: str
    label_en: str
    requires_approval: bool
    default_approver_type: str
    default_approver_refs: List[str]
    allow_override: bool
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ActionConfigUpdate(BaseModel):
    requires_approval: bool
    default_approver_type: str = "none"
    default_approver_refs: List[str] = Field(default_factory=list)
    allow_override: bool = True
    metadata: Optional[Dict[str, Any]] = None


class ResolveRequest(BaseModel):
    approver: Optional[Person] = None


class ResolveResponse(BaseModel):
    action: str
    requires_approval: bool
    approver: Optional[Person] = None


# Endpoints
@router.get("", response_model=List[ActionConfigResponse])
async def list_action_configs(db: Session = Depends(get_db)):
    """List the configuration of every action type."""
    return [ActionConfigResponse(**c.to_dict()) for c in ActionConfigStore(db).list_all()]


@router.get("/{action_id}", response_model=ActionConfigResponse)
async def get_action_config(action_id: str, db: Session = Depends(get_db)):
    """Get one action type's configuration (built-in default if never saved)."""
    return ActionConfigResponse(**ActionConfigStore(db).get(action_id).to_dict())


@router.put("/{action_id}", response_model=ActionConfigResponse)
async def update_action_config(
    action_id: str,
    body: ActionConfigUpdate,
    db: Session = Depends(get_db),
):
    """Create or replace an action type's configuration."""
    try:
        config = ActionConfigStore(db).upsert(
            action_id,
            requires_approval=body.requires_approval,
            default_approver_type=body.default_approver_type,
            default_approver_refs=body.default_approver_refs,
            allow_override=body.allow_override,
            metadata=body.metadata,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return ActionConfigResponse(**config.to_dict())


@router.post("/{action_id}/resolve", response_model=ResolveResponse)
async def resolve_action_approver(
    action_id: str,
    body: ResolveRequest,
    db: Session = Depends(get_db),
):
    """Preview who would approve the action, given an optional requested approver."""
    config = ActionConfigStore(db).get(action_id)
    requested = body.approver.model_dump() if body.approver else None
    resolved = None
    if config.requires_approval:
        resolved = resolve_approver(config, requested, role_lookup=RoleDirectory(db).get)
    return ResolveResponse(
        action=config.id.value,
        requires_approval=config.requires_approval,
        approver=Person(**resolved.to_dict()) if resolved else None,
    )
