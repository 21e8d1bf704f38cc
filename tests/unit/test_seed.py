"""Tests for database seeding."""

from assethub.core.action_config import ActionType
from assethub.db.models import ActionConfigRecord, Role
from assethub.db.seed import DEFAULT_ROLES, seed_database, seed_default_roles

from tests.factories import create_role


class TestSeed:

    def test_seed_database(self, db_session):
        result = seed_database(db_session)

        assert result == {"action_configs": len(ActionType), "roles": len(DEFAULT_ROLES)}
        assert db_session.query(ActionConfigRecord).count() == len(ActionType)
        assert db_session.get(Role, "ROLE-ADMIN").scope == "system"

    def test_seed_is_idempotent(self, db_session):
        seed_database(db_session)
        result = seed_database(db_session)

        assert result["action_configs"] == 0
        assert db_session.query(Role).count() == len(DEFAULT_ROLES)

    def test_existing_role_kept(self, db_session):
        create_role(db_session, id="ROLE-ASSET-MANAGER", name="Custom", members=["U1"])

        roles = seed_default_roles(db_session)

        assert roles["ROLE-ASSET-MANAGER"].name == "Custom"
        assert roles["ROLE-ASSET-MANAGER"].members == ["U1"]
