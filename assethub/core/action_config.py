"""Action types and the per-type approval configuration store.

Each action type carries one configuration record deciding whether the
action needs approval and who approves it by default. Records are seeded
from ``DEFAULT_ACTION_CONFIGS`` and only ever updated.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from assethub.core.exceptions import ValidationError
from assethub.db.base import utcnow
from assethub.db.models import ActionConfigRecord

logger = logging.getLogger(__name__)


class ActionType(str, Enum):
    """Closed set of business actions that may require approval."""

    PURCHASE = "purchase"
    INBOUND = "inbound"
    RECEIVE = "receive"
    BORROW = "borrow"
    RETURN = "return"
    MAINTENANCE = "maintenance"
    DISPOSE = "dispose"
    OUTBOUND = "outbound"
    RESERVE = "reserve"
    RELEASE = "release"
    ADJUST = "adjust"
    OTHER = "other"


class ApprovalType(str, Enum):
    """Type recorded on an approval request. ``generic`` maps to ``other``."""

    PURCHASE = "purchase"
    INBOUND = "inbound"
    RECEIVE = "receive"
    BORROW = "borrow"
    RETURN = "return"
    MAINTENANCE = "maintenance"
    DISPOSE = "dispose"
    OUTBOUND = "outbound"
    RESERVE = "reserve"
    RELEASE = "release"
    ADJUST = "adjust"
    GENERIC = "generic"


class ApproverType(str, Enum):
    NONE = "none"
    USER = "user"
    ROLE = "role"


@dataclass(frozen=True)
class ActionConfig:
    """Approval settings for one action type."""

    id: ActionType
    label_zh: str
    label_en: str
    requires_approval: bool = True
    default_approver_type: ApproverType = ApproverType.NONE
    default_approver_refs: List[str] = field(default_factory=list)
    allow_override: bool = True
    metadata: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id.value,
            "label_zh": self.label_zh,
            "label_en": self.label_en,
            "requires_approval": self.requires_approval,
            "default_approver_type": self.default_approver_type.value,
            "default_approver_refs": list(self.default_approver_refs),
            "allow_override": self.allow_override,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


ACTION_LABELS: Dict[ActionType, tuple[str, str]] = {
    ActionType.PURCHASE: ("采购", "Purchase"),
    ActionType.INBOUND: ("入库", "Inbound"),
    ActionType.RECEIVE: ("领用", "Receive"),
    ActionType.BORROW: ("借用", "Borrow"),
    ActionType.RETURN: ("归还", "Return"),
    ActionType.MAINTENANCE: ("维护", "Maintenance"),
    ActionType.DISPOSE: ("报废", "Dispose"),
    ActionType.OUTBOUND: ("耗材出库", "Outbound"),
    ActionType.RESERVE: ("耗材预留", "Reserve"),
    ActionType.RELEASE: ("释放预留", "Release"),
    ActionType.ADJUST: ("库存调整", "Adjust"),
    ActionType.OTHER: ("其他", "Other"),
}

# Reserving and releasing stock is bookkeeping only
NO_APPROVAL_BY_DEFAULT = {ActionType.RESERVE, ActionType.RELEASE}

DEFAULT_ACTION_CONFIGS: Dict[ActionType, ActionConfig] = {
    action: ActionConfig(
        id=action,
        label_zh=labels[0],
        label_en=labels[1],
        requires_approval=action not in NO_APPROVAL_BY_DEFAULT,
    )
    for action, labels in ACTION_LABELS.items()
}


def parse_action_type(value: Union[str, ActionType]) -> ActionType:
    """Parse an action type id, raising ValidationError for unknown ids."""
    try:
        return ActionType(value)
    except ValueError:
        raise ValidationError(f"Unknown action type: {value}", field="id") from None


def parse_approval_type(value: Union[str, ApprovalType]) -> ApprovalType:
    try:
        return ApprovalType(value)
    except ValueError:
        raise ValidationError(f"Unknown approval type: {value}", field="type") from None


def approval_type_to_action_type(value: Union[str, ApprovalType]) -> ActionType:
    """Map an approval type onto the action config that governs it."""
    approval_type = parse_approval_type(value)
    if approval_type is ApprovalType.GENERIC:
        return ActionType.OTHER
    return ActionType(approval_type.value)


def normalize_refs(refs: Optional[List[Any]]) -> List[str]:
    """Trim refs, dropping empties and duplicates while keeping order."""
    seen = set()
    normalized = []
    for ref in refs or []:
        if not isinstance(ref, str):
            continue
        ref = ref.strip()
        if ref and ref not in seen:
            seen.add(ref)
            normalized.append(ref)
    return normalized


def _record_to_config(record: ActionConfigRecord) -> ActionConfig:
    try:
        approver_type = ApproverType(record.default_approver_type)
    except ValueError:
        logger.warning(
            f"Action config {record.id} has unknown approver type {record.default_approver_type!r}, treating as none"
        )
        approver_type = ApproverType.NONE
    return ActionConfig(
        id=ActionType(record.id),
        label_zh=record.label_zh,
        label_en=record.label_en,
        requires_approval=bool(record.requires_approval),
        default_approver_type=approver_type,
        default_approver_refs=normalize_refs(record.default_approver_refs),
        allow_override=bool(record.allow_override),
        metadata=record.extra_data,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class ActionConfigStore:
    """
    Reads and updates action configurations.

    Unseeded action types fall back to their built-in default, so reads
    always succeed for any known action type.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, action: Union[str, ActionType]) -> ActionConfig:
        action = parse_action_type(action)
        record = self.db.get(ActionConfigRecord, action.value)
        if record is None:
            return DEFAULT_ACTION_CONFIGS[action]
        return _record_to_config(record)

    def list_all(self) -> List[ActionConfig]:
        records = {r.id: r for r in self.db.query(ActionConfigRecord).all()}
        configs = []
        for action in ActionType:
            record = records.get(action.value)
            configs.append(_record_to_config(record) if record else DEFAULT_ACTION_CONFIGS[action])
        return configs

    def upsert(
        self,
        action: Union[str, ActionType],
        *,
        requires_approval: bool,
        default_approver_type: Union[str, ApproverType],
        default_approver_refs: Optional[List[str]] = None,
        allow_override: bool = True,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ActionConfig:
        """
        Create or update the configuration for an action type.

        Labels always come from the built-in defaults. The caller owns the
        transaction; the record is flushed, not committed.

        Raises:
            ValidationError: If the action or approver type is unknown
        """
        action = parse_action_type(action)
        try:
            approver_type = ApproverType(default_approver_type)
        except ValueError:
            raise ValidationError(
                f"Unknown approver type: {default_approver_type}",
                field="default_approver_type",
            ) from None

        refs = normalize_refs(default_approver_refs)
        if approver_type is ApproverType.NONE:
            refs = []

        defaults = DEFAULT_ACTION_CONFIGS[action]
        record = self.db.get(ActionConfigRecord, action.value)
        if record is None:
            record = ActionConfigRecord(id=action.value, created_at=utcnow())
            self.db.add(record)

        record.label_zh = defaults.label_zh
        record.label_en = defaults.label_en
        record.requires_approval = bool(requires_approval)
        record.default_approver_type = approver_type.value
        record.default_approver_refs = refs
        record.allow_override = bool(allow_override)
        record.extra_data = metadata
        record.updated_at = utcnow()
        self.db.flush()

        logger.info(
            f"Action config {action.value} updated: requires_approval={record.requires_approval} "
            f"approver={approver_type.value} refs={refs} override={record.allow_override}"
        )
        return _record_to_config(record)

    def seed_defaults(self) -> int:
        """Insert default records for action types with no stored row."""
        existing = {r.id for r in self.db.query(ActionConfigRecord.id).all()}
        created = 0
        for action, config in DEFAULT_ACTION_CONFIGS.items():
            if action.value in existing:
                continue
            self.db.add(ActionConfigRecord(
                id=action.value,
                label_zh=config.label_zh,
                label_en=config.label_en,
                requires_approval=config.requires_approval,
                default_approver_type=config.default_approver_type.value,
                default_approver_refs=list(config.default_approver_refs),
                allow_override=config.allow_override,
                extra_data=config.metadata,
            ))
            created += 1
        self.db.flush()
        return created

