"""
Role-Based Access Control Module

The authorization boundary the engine consults before every operation.
Identity verification (sessions, passwords, tokens) happens upstream; by the
time a request reaches the engine it carries an ``Actor`` with role names.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Set, Tuple

from .errors import Forbidden


class Permission(Enum):
    """System permissions"""
    # Investor permissions
    CREATE_TRANSACTION = "create_transaction"
    VIEW_TRANSACTION = "view_transaction"
    VIEW_PLANS = "view_plans"

    # Admin transaction permissions
    CONFIRM_DEPOSIT = "confirm_deposit"
    APPROVE_TRANSACTION = "approve_transaction"
    REJECT_TRANSACTION = "reject_transaction"
    PROCESS_WITHDRAWAL = "process_withdrawal"
    COMPLETE_WITHDRAWAL = "complete_withdrawal"

    # Acting on another user's account
    ACT_FOR_ANY_USER = "act_for_any_user"

    # Catalog administration
    MANAGE_PLANS = "manage_plans"


@dataclass(frozen=True)
class Role:
    """Role with permissions"""
    name: str
    description: str
    permissions: frozenset = field(default_factory=frozenset)
    is_system_role: bool = False

    def has_permission(self, permission: Permission) -> bool:
        """Check if role has a specific permission"""
        return permission in self.permissions


@dataclass(frozen=True)
class Actor:
    """Authenticated caller: an investor, an administrator, or the system itself"""
    id: str
    roles: Tuple[str, ...] = ()

    @classmethod
    def system(cls) -> 'Actor':
        return cls(id="system", roles=("SYSTEM",))


SYSTEM_ROLES: Dict[str, Role] = {
    "ADMIN": Role(
        name="ADMIN",
        description="Administrator with full access",
        permissions=frozenset(Permission),
        is_system_role=True,
    ),
    "OPERATOR": Role(
        name="OPERATOR",
        description="Back-office operator approving and settling movements",
        permissions=frozenset({
            Permission.VIEW_TRANSACTION, Permission.VIEW_PLANS,
            Permission.CONFIRM_DEPOSIT, Permission.APPROVE_TRANSACTION,
            Permission.REJECT_TRANSACTION, Permission.PROCESS_WITHDRAWAL,
            Permission.COMPLETE_WITHDRAWAL, Permission.ACT_FOR_ANY_USER,
        }),
        is_system_role=True,
    ),
    "INVESTOR": Role(
        name="INVESTOR",
        description="Account holder submitting deposits and withdrawals",
        permissions=frozenset({
            Permission.CREATE_TRANSACTION, Permission.VIEW_TRANSACTION,
            Permission.VIEW_PLANS,
        }),
        is_system_role=True,
    ),
    "SYSTEM": Role(
        name="SYSTEM",
        description="Internal actor for automatic confirmations",
        permissions=frozenset({Permission.CONFIRM_DEPOSIT, Permission.VIEW_TRANSACTION}),
        is_system_role=True,
    ),
}


class Authorizer(ABC):
    """Authorization collaborator contract"""

    @abstractmethod
    def authorize(self, actor: Optional[Actor], permission: Permission) -> None:
        """Return normally when allowed, raise Forbidden otherwise"""
        pass

    def authorize_for(self, actor: Optional[Actor], permission: Permission, owner_id: str) -> None:
        """
        Authorize an operation on ``owner_id``'s account

        Actors acting on an account other than their own also need
        ``ACT_FOR_ANY_USER``.
        """
        self.authorize(actor, permission)
        if actor.id != owner_id:
            self.authorize(actor, Permission.ACT_FOR_ANY_USER)


class RoleAuthorizer(Authorizer):
    """Grants a permission when any of the actor's roles carries it"""

    def __init__(self, roles: Optional[Iterable[Role]] = None):
        self._roles: Dict[str, Role] = dict(SYSTEM_ROLES)
        for role in roles or ():
            self.register_role(role)

    def register_role(self, role: Role) -> None:
        """Add or replace a non-system role"""
        existing = self._roles.get(role.name)
        if existing and existing.is_system_role:
            raise ValueError(f"System role {role.name} cannot be replaced")
        self._roles[role.name] = role

    def get_role(self, name: str) -> Optional[Role]:
        return self._roles.get(name)

    def get_permissions(self, actor: Actor) -> Set[Permission]:
        """Get all permissions for an actor from all their roles"""
        permissions: Set[Permission] = set()
        for role_name in actor.roles:
            role = self._roles.get(role_name)
            if role:
                permissions.update(role.permissions)
        return permissions

    def authorize(self, actor: Optional[Actor], permission: Permission) -> None:
        if actor is None or permission not in self.get_permissions(actor):
            raise Forbidden(actor.id if actor else None, permission.value)
