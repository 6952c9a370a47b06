"""
Test suite for RBAC module

Tests system roles, custom role registration and permission checks.
"""

import pytest

from investment_engine.errors import Forbidden
from investment_engine.rbac import Actor, Permission, Role, RoleAuthorizer, SYSTEM_ROLES


@pytest.fixture
def authorizer():
    """Create role authorizer for tests"""
    return RoleAuthorizer()


class TestSystemRoles:
    """Test built-in role definitions"""

    def test_system_roles_present(self, authorizer):
        for name in ("ADMIN", "OPERATOR", "INVESTOR", "SYSTEM"):
            role = authorizer.get_role(name)
            assert role is not None
            assert role.is_system_role

    def test_admin_has_every_permission(self):
        assert SYSTEM_ROLES["ADMIN"].permissions == frozenset(Permission)

    def test_investor_cannot_approve(self, authorizer):
        investor = Actor("user-1", ("INVESTOR",))
        authorizer.authorize(investor, Permission.CREATE_TRANSACTION)
        with pytest.raises(Forbidden) as exc_info:
            authorizer.authorize(investor, Permission.APPROVE_TRANSACTION)
        assert exc_info.value.actor_id == "user-1"
        assert exc_info.value.permission == "approve_transaction"

    def test_system_actor_only_confirms(self, authorizer):
        system = Actor.system()
        authorizer.authorize(system, Permission.CONFIRM_DEPOSIT)
        with pytest.raises(Forbidden):
            authorizer.authorize(system, Permission.COMPLETE_WITHDRAWAL)

    def test_operator_cannot_manage_plans(self, authorizer):
        with pytest.raises(Forbidden):
            authorizer.authorize(Actor("ops", ("OPERATOR",)), Permission.MANAGE_PLANS)

    def test_system_role_cannot_be_replaced(self, authorizer):
        with pytest.raises(ValueError, match="cannot be replaced"):
            authorizer.register_role(Role("ADMIN", "Impostor", frozenset()))


class TestCustomRoles:
    """Test registering additional roles"""

    def test_custom_role_grants_permissions(self):
        auditor = Role("AUDITOR", "Read-only reviewer", frozenset({Permission.VIEW_TRANSACTION}))
        authorizer = RoleAuthorizer([auditor])
        actor = Actor("aud-1", ("AUDITOR",))

        authorizer.authorize(actor, Permission.VIEW_TRANSACTION)
        with pytest.raises(Forbidden):
            authorizer.authorize(actor, Permission.APPROVE_TRANSACTION)

    def test_permissions_union_across_roles(self, authorizer):
        actor = Actor("both", ("INVESTOR", "SYSTEM"))
        permissions = authorizer.get_permissions(actor)
        assert Permission.CREATE_TRANSACTION in permissions
        assert Permission.CONFIRM_DEPOSIT in permissions

    def test_unknown_roles_grant_nothing(self, authorizer):
        assert authorizer.get_permissions(Actor("x", ("NOBODY",))) == set()

    def test_missing_actor_forbidden(self, authorizer):
        with pytest.raises(Forbidden) as exc_info:
            authorizer.authorize(None, Permission.VIEW_PLANS)
        assert exc_info.value.actor_id is None


class TestOwnership:
    """Acting on another user's account"""

    def test_owner_may_act_on_own_account(self, authorizer):
        authorizer.authorize_for(Actor("user-1", ("INVESTOR",)), Permission.CREATE_TRANSACTION, "user-1")

    def test_investor_cannot_act_for_others(self, authorizer):
        with pytest.raises(Forbidden) as exc_info:
            authorizer.authorize_for(Actor("user-1", ("INVESTOR",)), Permission.CREATE_TRANSACTION, "user-2")
        assert exc_info.value.permission == "act_for_any_user"

    @pytest.mark.parametrize("role", ["ADMIN", "OPERATOR"])
    def test_staff_may_act_for_others(self, authorizer, role):
        authorizer.authorize_for(Actor("staff-1", (role,)), Permission.VIEW_TRANSACTION, "user-2")

    def test_base_permission_checked_first(self, authorizer):
        with pytest.raises(Forbidden) as exc_info:
            authorizer.authorize_for(Actor("ops", ("OPERATOR",)), Permission.CREATE_TRANSACTION, "user-2")
        assert exc_info.value.permission == "create_transaction"
