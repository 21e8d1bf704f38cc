from sqlalchemy import Column, String, DateTime, JSON, Text

from assethub.db.base import Base, prefixed_id, utcnow


class Role(Base):
    """A named group of user ids, used to route approvals to a team."""
    __tablename__ = "roles"

    id = Column(String(32), primary_key=True, default=lambda: prefixed_id("ROLE", 6))
    name = Column(String(100), nullable=False)
    scope = Column(String(64), nullable=False, default="global")
    description = Column(Text, nullable=True)
    members = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Role {self.id} {self.name} members={len(self.members or [])}>"
