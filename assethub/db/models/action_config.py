"""Per action-type approval configuration."""

from sqlalchemy import Column, String, DateTime, JSON, Boolean

from assethub.db.base import Base, utcnow


class ActionConfigRecord(Base):
    """
    Stored approval settings for one action type.

    Rows are upserted by administrators and never deleted; a missing row
    means the built-in default for that action type applies.
    """
    __tablename__ = "asset_action_configs"

    id = Column(String(32), primary_key=True)
    label_zh = Column(String(100), nullable=False)
    label_en = Column(String(100), nullable=False)
    requires_approval = Column(Boolean, nullable=False, default=True)
    default_approver_type = Column(String(16), nullable=False, default="none")
    default_approver_refs = Column(JSON, nullable=False, default=list)
    allow_override = Column(Boolean, nullable=False, default=True)
    extra_data = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<ActionConfigRecord {self.id} approver={self.default_approver_type}>"
