"""Read access to approval roles.

Role membership is managed by the host platform; the engine only looks
roles up when an action config routes approvals to a role.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from assethub.db.models import Role


@dataclass(frozen=True)
class RoleInfo:
    id: str
    name: str
    scope: str
    members: tuple[str, ...]
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "scope": self.scope,
            "description": self.description,
            "members": list(self.members),
        }


def normalize_members(members: Optional[Sequence[Any]]) -> tuple[str, ...]:
    """Trim member ids, dropping empties and duplicates while keeping order."""
    seen = set()
    result = []
    for member in members or []:
        if not isinstance(member, str):
            continue
        member = member.strip()
        if member and member not in seen:
            seen.add(member)
            result.append(member)
    return tuple(result)


def _to_info(role: Role) -> RoleInfo:
    return RoleInfo(
        id=role.id,
        name=role.name,
        scope=role.scope,
        members=normalize_members(role.members),
        description=role.description,
    )


class RoleDirectory:
    """Looks up roles and their members."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, role_id: str) -> Optional[RoleInfo]:
        role = self.db.get(Role, role_id)
        return _to_info(role) if role else None

    def list_roles(self, *, scope: Optional[str] = None) -> List[RoleInfo]:
        query = self.db.query(Role)
        if scope:
            query = query.filter(Role.scope == scope)
        return [_to_info(r) for r in query.order_by(Role.created_at.desc()).all()]

    def roles_for_member(self, user_id: str) -> List[RoleInfo]:
        """Roles listing ``user_id`` as a member."""
        return [info for info in self.list_roles() if user_id in info.members]
