"""Approver resolution.

Given an action config and an optional approver chosen by the caller,
decide who approves the request. Resolution is pure: the only lookup is
through the ``role_lookup`` callable passed in, so the same inputs always
give the same answer or the same error.

Outcomes:
    ResolvedApprover  the approver is known
    None              nobody is assigned (no default and no request, or a
                      multi-member role with override allowed; the caller
                      should ask the applicant to pick one)
    error             one of the ApproverResolutionError subclasses
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional, Union

from assethub.core.action_config import ActionConfig, ApproverType
from assethub.core.exceptions import (
    AmbiguousRoleApprover,
    ApproverNotInRole,
    NoDefaultApprover,
    NoRoleMembers,
    OverrideNotAllowed,
)
from assethub.core.roles import RoleInfo


@dataclass(frozen=True)
class ResolvedApprover:
    id: str
    name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


RoleLookup = Callable[[str], Optional[RoleInfo]]
ApproverInput = Union[ResolvedApprover, Mapping[str, Any], None]


def normalize_approver(requested: ApproverInput) -> Optional[ResolvedApprover]:
    """Trim the requested approver; a missing or blank id means no request."""
    if requested is None:
        return None
    if isinstance(requested, ResolvedApprover):
        raw_id, raw_name = requested.id, requested.name
    else:
        raw_id, raw_name = requested.get("id"), requested.get("name")

    if not isinstance(raw_id, str) or not raw_id.strip():
        return None
    name = raw_name.strip() if isinstance(raw_name, str) and raw_name.strip() else None
    return ResolvedApprover(id=raw_id.strip(), name=name)


def _resolve_user(config: ActionConfig, requested: Optional[ResolvedApprover]) -> ResolvedApprover:
    default_id = config.default_approver_refs[0]
    if requested is None:
        return ResolvedApprover(id=default_id)
    if not config.allow_override and requested.id != default_id:
        raise OverrideNotAllowed(
            f"Action '{config.id.value}' must be approved by {default_id}",
            action=config.id.value,
            requested=requested.id,
        )
    return requested


def _resolve_role(
    config: ActionConfig,
    requested: Optional[ResolvedApprover],
    role_lookup: Optional[RoleLookup],
) -> Optional[ResolvedApprover]:
    role_id = config.default_approver_refs[0]
    role = role_lookup(role_id) if role_lookup else None
    members = role.members if role else ()
    role_label = role.name if role else role_id

    if not members:
        raise NoRoleMembers(
            f"Default approver role ({role_label}) has no members",
            action=config.id.value,
            role_id=role_id,
        )

    if not config.allow_override:
        if len(members) > 1:
            raise AmbiguousRoleApprover(
                f"Default approver role ({role_label}) has {len(members)} members "
                f"and overriding the approver is not allowed",
                action=config.id.value,
                role_id=role_id,
            )
        sole = members[0]
        if requested is not None and requested.id != sole:
            raise OverrideNotAllowed(
                f"Action '{config.id.value}' must be approved by {sole}",
                action=config.id.value,
                requested=requested.id,
            )
        return requested if requested is not None else ResolvedApprover(id=sole)

    if requested is not None:
        if requested.id not in members:
            raise ApproverNotInRole(
                f"Approver {requested.id} is not a member of role ({role_label})",
                action=config.id.value,
                role_id=role_id,
                requested=requested.id,
            )
        return requested

    if len(members) == 1:
        return ResolvedApprover(id=members[0])
    return None


def resolve_approver(
    config: ActionConfig,
    requested: ApproverInput = None,
    role_lookup: Optional[RoleLookup] = None,
) -> Optional[ResolvedApprover]:
    """
    Resolve the approver for an action.

    Args:
        config: Action configuration for the request's action type
        requested: Approver chosen by the caller, as ``{"id", "name"}``
        role_lookup: Returns the role for an id, or None if unknown

    Returns:
        The resolved approver, or None when undetermined

    Raises:
        OverrideNotAllowed: Requested approver differs from a fixed default
        NoDefaultApprover: No usable default and overriding is not allowed
        NoRoleMembers: The default role is unknown or empty
        AmbiguousRoleApprover: Fixed role with several members
        ApproverNotInRole: Requested approver is outside the default role
    """
    cleaned = normalize_approver(requested)
    approver_type = config.default_approver_type
    has_refs = bool(config.default_approver_refs)

    if approver_type is ApproverType.USER and has_refs:
        return _resolve_user(config, cleaned)

    if approver_type is ApproverType.ROLE and has_refs:
        return _resolve_role(config, cleaned, role_lookup)

    if not config.allow_override:
        raise NoDefaultApprover(
            f"Action '{config.id.value}' has no default approver configured",
            action=config.id.value,
        )
    return cleaned
