"""Role lookup API endpoints."""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from assethub.api.deps import get_db
from assethub.core.exceptions import NotFound
from assethub.core.roles import RoleDirectory

router = APIRouter(prefix="/roles", tags=["roles"])


# Schemas
class RoleResponse(BaseModel):
    id: str
    name: str
    scope: str
    description: Optional[str] = None
    members: List[str]


# Endpoints
@router.get("", response_model=List[RoleResponse])
async def list_roles(
    db: Session = Depends(get_db),
    scope: Optional[str] = Query(None, description="Only roles in this scope"),
    member: Optional[str] = Query(None, description="Only roles listing this user"),
):
    """List approval roles."""
    directory = RoleDirectory(db)
    roles = directory.roles_for_member(member) if member else directory.list_roles(scope=scope)
    if member and scope:
        roles = [r for r in roles if r.scope == scope]
    return [RoleResponse(**r.to_dict()) for r in roles]


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(role_id: str, db: Session = Depends(get_db)):
    """Get a role and its members."""
    role = RoleDirectory(db).get(role_id)
    if not role:
        raise NotFound(f"Role {role_id} not found", role_id=role_id)
    return RoleResponse(**role.to_dict())
