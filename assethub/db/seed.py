"""Database seeding for Asset Hub.

Creates the schema, the default action configs and the default roles.
"""

import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from assethub.core.action_config import ActionConfigStore
from assethub.db.base import Base
from assethub.db.models import Role

logger = logging.getLogger(__name__)

DEFAULT_ROLES = [
    {
        "id": "ROLE-ADMIN",
        "name": "超级管理员",
        "scope": "system",
        "description": "拥有全部资产与配置权限",
    },
    {
        "id": "ROLE-ASSET-MANAGER",
        "name": "资产管理员",
        "scope": "asset",
        "description": "负责资产新增、入库与盘点",
    },
]


def create_schema(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def seed_default_roles(db: Session) -> dict[str, Role]:
    """
    Create the default roles.

    Roles are idempotent - if they already exist, returns existing roles.

    Args:
        db: Database session

    Returns:
        Dict mapping role id to Role object
    """
    roles = {}
    for config in DEFAULT_ROLES:
        existing = db.get(Role, config["id"])
        if existing:
            roles[existing.id] = existing
            continue

        role = Role(members=[], **config)
        db.add(role)
        roles[role.id] = role

    db.flush()
    return roles


def seed_database(db: Session, engine: Optional[Engine] = None) -> dict:
    """Create tables if an engine is given, then seed configs and roles."""
    if engine is not None:
        create_schema(engine)
    configs = ActionConfigStore(db).seed_defaults()
    roles = seed_default_roles(db)
    db.commit()
    logger.info(f"Seeded {configs} action configs and {len(roles)} roles")
    return {"action_configs": configs, "roles": len(roles)}


# CLI script for seeding
if __name__ == "__main__":
    import sys
    from assethub.db.session import SessionLocal, engine

    db = SessionLocal()
    try:
        result = seed_database(db, engine)
        print(f"Seeded {result['action_configs']} action configs")
        for role in db.query(Role).order_by(Role.id).all():
            print(f"  - {role.id}: {role.name} ({len(role.members or [])} members)")
        print("\nSeeding complete!")

    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()
