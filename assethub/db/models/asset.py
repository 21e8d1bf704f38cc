"""Asset, asset operation and borrow record models."""

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Text
from sqlalchemy.orm import relationship

from assethub.db.base import Base, prefixed_id, utcnow


class Asset(Base):
    __tablename__ = "assets"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("AST"))
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="general")
    status = Column(String(32), nullable=False, default="idle", index=True)
    owner = Column(String(255), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    company_code = Column(String(64), nullable=False, default="DEFAULT")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    operations = relationship("AssetOperation", back_populates="asset", order_by="AssetOperation.created_at")

    def __repr__(self) -> str:
        return f"<Asset {self.id} {self.name} [{self.status}]>"


class AssetOperation(Base):
    """A lifecycle action on an asset. Pending until its approval resolves."""
    __tablename__ = "asset_operations"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("OP"))
    asset_id = Column(String(32), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    actor = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default="pending")
    extra_data = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    asset = relationship("Asset", back_populates="operations")

    def __repr__(self) -> str:
        return f"<AssetOperation {self.id} {self.type} [{self.status}]>"


class BorrowRecord(Base):
    """Bookkeeping for a borrowed asset, keyed by the borrow operation."""
    __tablename__ = "asset_borrow_records"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("BOR"))
    asset_id = Column(String(32), ForeignKey("assets.id", ondelete="CASCADE"), nullable=False, index=True)
    borrow_operation_id = Column(String(32), nullable=False, unique=True)
    borrower = Column(String(255), nullable=True)
    planned_return_date = Column(String(32), nullable=True)
    status = Column(String(32), nullable=False, default="active", index=True)
    return_operation_id = Column(String(32), nullable=True)
    return_operation_date = Column(DateTime, nullable=True)
    overdue_notified_at = Column(DateTime, nullable=True)
    external_todo_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    asset = relationship("Asset")

    def __repr__(self) -> str:
        return f"<BorrowRecord {self.id} asset={self.asset_id} [{self.status}]>"
