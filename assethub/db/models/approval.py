"""Approval workflow database models.

Stores approval requests and their transition history.
"""

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship

from assethub.db.base import Base, prefixed_id, utcnow


class ApprovalRequest(Base):
    """
    A request to perform an asset or consumable action.

    One request is created per action instance. Requests are never deleted;
    they end in one of the terminal statuses.
    """
    __tablename__ = "asset_approval_requests"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("APR"))

    # Subject (at most one of asset/consumable)
    asset_id = Column(String(32), ForeignKey("assets.id", ondelete="SET NULL"), nullable=True, index=True)
    consumable_id = Column(String(32), ForeignKey("consumables.id", ondelete="SET NULL"), nullable=True, index=True)

    # Pending side-effect payloads
    operation_id = Column(String(32), ForeignKey("asset_operations.id", ondelete="SET NULL"), nullable=True, index=True)
    consumable_operation_id = Column(
        String(32), ForeignKey("consumable_operations.id", ondelete="SET NULL"), nullable=True, index=True
    )

    type = Column(String(32), nullable=False, index=True)
    status = Column(String(32), nullable=False, default="pending", index=True)
    title = Column(String(255), nullable=False)
    reason = Column(Text, nullable=True)

    applicant_id = Column(String(64), nullable=False, index=True)
    applicant_name = Column(String(255), nullable=True)
    approver_id = Column(String(64), nullable=True, index=True)
    approver_name = Column(String(255), nullable=True)

    result = Column(Text, nullable=True)
    external_todo_id = Column(String(128), nullable=True)

    # "metadata" is reserved on declarative classes
    extra_data = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    asset = relationship("Asset")
    consumable = relationship("Consumable")
    operation = relationship("AssetOperation")
    consumable_operation = relationship("ConsumableOperation")
    history = relationship("ApprovalHistory", back_populates="request", order_by="ApprovalHistory.created_at")
    cc_recipients = relationship(
        "ApprovalCcRecipient", back_populates="request", order_by="ApprovalCcRecipient.created_at"
    )

    def __repr__(self) -> str:
        return f"<ApprovalRequest {self.id} {self.type} [{self.status}]>"


class ApprovalHistory(Base):
    """
    Records submissions, transitions and reassignments of approval requests.
    """
    __tablename__ = "asset_approval_history"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("APH"))
    request_id = Column(
        String(32), ForeignKey("asset_approval_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )

    action = Column(String(32), nullable=False)
    from_status = Column(String(32), nullable=True)
    to_status = Column(String(32), nullable=False)

    actor_id = Column(String(64), nullable=True)
    actor_name = Column(String(255), nullable=True)
    comment = Column(Text, nullable=True)

    extra_data = Column("metadata", JSON, nullable=False, default=dict)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    request = relationship("ApprovalRequest", back_populates="history")

    def __repr__(self) -> str:
        return f"<ApprovalHistory {self.action} {self.from_status} -> {self.to_status}>"


class ApprovalCcRecipient(Base):
    """A user copied on an approval request. Read-only visibility, no decision rights."""
    __tablename__ = "asset_approval_cc_recipients"

    request_id = Column(
        String(32), ForeignKey("asset_approval_requests.id", ondelete="CASCADE"), primary_key=True
    )
    user_id = Column(String(64), primary_key=True, index=True)
    user_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    request = relationship("ApprovalRequest", back_populates="cc_recipients")

    def __repr__(self) -> str:
        return f"<ApprovalCcRecipient {self.request_id} {self.user_id}>"
