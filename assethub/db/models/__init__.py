"""Database models for Asset Hub."""

from assethub.db.models.action_config import ActionConfigRecord
from assethub.db.models.role import Role
from assethub.db.models.asset import Asset, AssetOperation, BorrowRecord
from assethub.db.models.consumable import Consumable, ConsumableOperation
from assethub.db.models.approval import ApprovalRequest, ApprovalHistory, ApprovalCcRecipient

__all__ = [
    "ActionConfigRecord",
    "Role",
    "Asset",
    "AssetOperation",
    "BorrowRecord",
    "Consumable",
    "ConsumableOperation",
    "ApprovalRequest",
    "ApprovalHistory",
    "ApprovalCcRecipient",
]
