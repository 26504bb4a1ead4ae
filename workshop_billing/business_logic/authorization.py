# workshop_billing/business_logic/authorization.py

from dataclasses import dataclass, field
from typing import FrozenSet, Optional
import logging

from workshop_billing.constants import Permission
from workshop_billing.exceptions import PermissionDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Who is calling, for which organization, with which permissions.

    organization_id is None only for the system context, which may act on every organization.
    """
    user_id: str
    organization_id: Optional[str]
    permissions: FrozenSet[Permission] = field(default_factory=frozenset)

    @property
    def is_system(self) -> bool:
        return self.organization_id is None

    def has(self, permission: Permission) -> bool:
        return permission in self.permissions


SYSTEM_CONTEXT = AuthContext(user_id="system", organization_id=None, permissions=frozenset(Permission))


def require_permission(ctx: AuthContext, permission: Permission) -> None:
    if ctx is None or not ctx.has(permission):
        user = ctx.user_id if ctx else None
        logger.warning(f"Permission '{permission.value}' denied for user {user}.")
        raise PermissionDeniedError(f"Missing permission: {permission.value}")


def require_organization(ctx: AuthContext) -> str:
    """The caller's organization id; organization-scoped calls need one."""
    if ctx.organization_id is None:
        raise PermissionDeniedError("This operation needs an organization context.")
    return ctx.organization_id
