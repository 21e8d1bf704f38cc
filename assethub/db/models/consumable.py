"""Consumable stock models."""

from sqlalchemy import Column, String, DateTime, JSON, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from assethub.db.base import Base, prefixed_id, utcnow


class Consumable(Base):
    __tablename__ = "consumables"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("CON"))
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False, default="general")
    status = Column(String(32), nullable=False, default="in-stock", index=True)
    quantity = Column(Integer, nullable=False, default=0)
    reserved_quantity = Column(Integer, nullable=False, default=0)
    safety_stock = Column(Integer, nullable=False, default=0)
    unit = Column(String(32), nullable=False, default="pcs")
    keeper = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    operations = relationship(
        "ConsumableOperation", back_populates="consumable", order_by="ConsumableOperation.created_at"
    )

    def __repr__(self) -> str:
        return f"<Consumable {self.id} {self.name} qty={self.quantity} [{self.status}]>"


class ConsumableOperation(Base):
    """A signed stock movement, applied once its approval is granted."""
    __tablename__ = "consumable_operations"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("COP"))
    consumable_id = Column(String(32), ForeignKey("consumables.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(32), nullable=False)
    actor = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    status = Column(String(32), nullable=False, default="pending")
    quantity_delta = Column(Integer, nullable=False, default=0)
    reserved_delta = Column(Integer, nullable=False, default=0)
    extra_data = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    consumable = relationship("Consumable", back_populates="operations")

    def __repr__(self) -> str:
        return f"<ConsumableOperation {self.id} {self.type} {self.quantity_delta:+d} [{self.status}]>"
