"""
Admin Authorization

Pure predicates over an admin's role and capability set, plus `ensure_*`
helpers that raise ForbiddenError. Role and capability are independent:
callers check whichever the operation demands, or both.
"""

import logging
from collections.abc import Iterable

from admissions.modules.admins.models import Admin, AdminRole, Permission
from admissions.modules.shared.errors import ForbiddenError

logger = logging.getLogger(__name__)


def _value(item: str | Permission | AdminRole) -> str:
    return item.value if isinstance(item, (Permission, AdminRole)) else item


def authorize(admin: Admin, capability: Permission | str) -> bool:
    """True iff the admin is active and holds the capability."""
    if not admin.is_active:
        return False
    granted = {_value(p) for p in (admin.permissions or [])}
    return _value(capability) in granted


def authorize_role(admin: Admin, allowed_roles: Iterable[AdminRole | str]) -> bool:
    """True iff the admin's role is one of `allowed_roles`."""
    return _value(admin.role) in {_value(r) for r in allowed_roles}


def ensure_capability(admin: Admin, capability: Permission | str) -> None:
    """Raise ForbiddenError unless `authorize(admin, capability)` holds."""
    if not authorize(admin, capability):
        logger.warning(
            f"Admin {admin.id} ({admin.username}) denied: missing capability '{_value(capability)}'"
        )
        raise ForbiddenError()


def ensure_role(admin: Admin, allowed_roles: Iterable[AdminRole | str]) -> None:
    """Raise ForbiddenError unless the admin is active and holds one of the roles."""
    allowed_roles = list(allowed_roles)
    if not admin.is_active or not authorize_role(admin, allowed_roles):
        logger.warning(
            f"Admin {admin.id} ({admin.username}) denied: role '{_value(admin.role)}' "
            f"not in {[_value(r) for r in allowed_roles]}"
        )
        raise ForbiddenError("Access denied for your role.")
