"""Tests for approver resolution."""

import pytest

from assethub.core.action_config import ActionConfig, ActionType, ApproverType
from assethub.core.approval.approver import ResolvedApprover, normalize_approver, resolve_approver
from assethub.core.exceptions import (
    AmbiguousRoleApprover,
    ApproverNotInRole,
    ApproverResolutionError,
    NoDefaultApprover,
    NoRoleMembers,
    OverrideNotAllowed,
)
from assethub.core.roles import RoleInfo


def make_config(approver_type=ApproverType.NONE, refs=(), allow_override=True, action=ActionType.INBOUND):
    return ActionConfig(
        id=action,
        label_zh="入库",
        label_en="Inbound",
        default_approver_type=approver_type,
        default_approver_refs=list(refs),
        allow_override=allow_override,
    )


def lookup_for(*roles):
    table = {r.id: r for r in roles}
    return table.get


ROLE_SINGLE = RoleInfo(id="ROLE-1", name="Warehouse", scope="asset", members=("U1",))
ROLE_MULTI = RoleInfo(id="ROLE-2", name="IT", scope="asset", members=("U1", "U2", "U3"))
ROLE_EMPTY = RoleInfo(id="ROLE-3", name="Empty", scope="asset", members=())


class TestNormalizeApprover:

    def test_none(self):
        assert normalize_approver(None) is None

    def test_blank_id_means_no_request(self):
        assert normalize_approver({"id": "  ", "name": "X"}) is None

    def test_trims_values(self):
        assert normalize_approver({"id": " U1 ", "name": " Alice "}) == ResolvedApprover("U1", "Alice")

    def test_blank_name_dropped(self):
        assert normalize_approver({"id": "U1", "name": ""}) == ResolvedApprover("U1", None)


class TestUserApprover:

    def test_default_user(self):
        config = make_config(ApproverType.USER, ["U9"])
        assert resolve_approver(config) == ResolvedApprover("U9")

    def test_override_allowed(self):
        config = make_config(ApproverType.USER, ["U9"], allow_override=True)
        assert resolve_approver(config, {"id": "U5", "name": "Eve"}) == ResolvedApprover("U5", "Eve")

    def test_override_not_allowed(self):
        """A differing requested approver always fails when overriding is off."""
        config = make_config(ApproverType.USER, ["U9"], allow_override=False)
        with pytest.raises(OverrideNotAllowed):
            resolve_approver(config, {"id": "U5"})

    def test_same_user_passes_when_override_not_allowed(self):
        config = make_config(ApproverType.USER, ["U9"], allow_override=False)
        assert resolve_approver(config, {"id": "U9", "name": "Nina"}) == ResolvedApprover("U9", "Nina")

    def test_only_first_ref_used(self):
        config = make_config(ApproverType.USER, ["U9", "U8"])
        assert resolve_approver(config).id == "U9"


class TestRoleApprover:

    def test_single_member_role_without_override(self):
        """inbound routed to ROLE-1 with one member resolves to that member."""
        config = make_config(ApproverType.ROLE, ["ROLE-1"], allow_override=False)
        assert resolve_approver(config, None, lookup_for(ROLE_SINGLE)) == ResolvedApprover("U1")

    def test_single_member_role_rejects_other_request(self):
        config = make_config(ApproverType.ROLE, ["ROLE-1"], allow_override=False)
        with pytest.raises(OverrideNotAllowed):
            resolve_approver(config, {"id": "U2"}, lookup_for(ROLE_SINGLE))

    def test_multi_member_role_without_override_is_ambiguous(self):
        config = make_config(ApproverType.ROLE, ["ROLE-2"], allow_override=False)
        with pytest.raises(AmbiguousRoleApprover):
            resolve_approver(config, None, lookup_for(ROLE_MULTI))

    def test_multi_member_role_with_override_is_undetermined(self):
        config = make_config(ApproverType.ROLE, ["ROLE-2"], allow_override=True)
        assert resolve_approver(config, None, lookup_for(ROLE_MULTI)) is None

    def test_multi_member_role_accepts_member(self):
        config = make_config(ApproverType.ROLE, ["ROLE-2"], allow_override=True)
        assert resolve_approver(config, {"id": "U3"}, lookup_for(ROLE_MULTI)) == ResolvedApprover("U3")

    def test_request_outside_role(self):
        config = make_config(ApproverType.ROLE, ["ROLE-2"], allow_override=True)
        with pytest.raises(ApproverNotInRole):
            resolve_approver(config, {"id": "U7"}, lookup_for(ROLE_MULTI))

    def test_empty_role(self):
        config = make_config(ApproverType.ROLE, ["ROLE-3"])
        with pytest.raises(NoRoleMembers):
            resolve_approver(config, None, lookup_for(ROLE_EMPTY))

    def test_unknown_role(self):
        config = make_config(ApproverType.ROLE, ["ROLE-404"])
        with pytest.raises(NoRoleMembers):
            resolve_approver(config, None, lookup_for())

    def test_missing_lookup_treated_as_unknown_role(self):
        config = make_config(ApproverType.ROLE, ["ROLE-1"])
        with pytest.raises(NoRoleMembers):
            resolve_approver(config)


class TestNoDefaultApprover:

    def test_returns_requested(self):
        config = make_config(ApproverType.NONE)
        assert resolve_approver(config, {"id": "U4"}) == ResolvedApprover("U4")

    def test_undetermined_without_request(self):
        assert resolve_approver(make_config(ApproverType.NONE)) is None

    def test_not_allowed_without_default(self):
        config = make_config(ApproverType.NONE, allow_override=False)
        with pytest.raises(NoDefaultApprover):
            resolve_approver(config, {"id": "U4"})

    def test_typed_config_without_refs(self):
        config = make_config(ApproverType.USER, [], allow_override=False)
        with pytest.raises(NoDefaultApprover):
            resolve_approver(config)

    def test_errors_share_a_base_class(self):
        assert issubclass(NoDefaultApprover, ApproverResolutionError)
        assert NoDefaultApprover.status_code == 400

    def test_resolution_is_deterministic(self):
        config = make_config(ApproverType.ROLE, ["ROLE-2"], allow_override=True)
        lookup = lookup_for(ROLE_MULTI)
        results = {resolve_approver(config, {"id": "U2"}, lookup) for _ in range(5)}
        assert results == {ResolvedApprover("U2")}
