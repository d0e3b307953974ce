"""
Authorization decisions.

Everything here is a pure function over explicit inputs: no session,
no cache, no request object. Callers translate a denial into the matching
``ServiceError``.
"""

from taskboard.core.exceptions import Conflict, Forbidden
from taskboard.models import Claims, Role

ROLE_HIERARCHY = {
    Role.USER: 1,
    Role.ADMIN: 2,
}

NOT_ALLOWED_MESSAGE = "You are not allowed to access this resource"
LAST_ADMIN_MESSAGE = "Cannot downgrade the last admin user"


def can_access(resource_owner_id: int, requester: Claims) -> bool:
    """Owner-or-admin rule."""
    if requester.role == Role.ADMIN:
        return True
    return requester.id == resource_owner_id


def assert_can_access(
    resource_owner_id: int, requester: Claims, message: str = NOT_ALLOWED_MESSAGE
) -> None:
    if not can_access(resource_owner_id, requester):
        raise Forbidden(message)


def has_role(requester_role: Role, required_role: Role) -> bool:
    """True if ``requester_role`` ranks at or above ``required_role``."""
    return ROLE_HIERARCHY[Role(requester_role)] >= ROLE_HIERARCHY[Role(required_role)]


def assert_not_last_admin(current_admin_count: int, target, new_role: Role) -> None:
    """
    Refuse to demote the only remaining admin.

    ``target`` is anything with a ``role`` attribute (a ``User`` row or a
    cached ``UserRead``).

    Must be evaluated against an admin count read inside the same
    transaction as the role write.
    """
    if (
        target.role == Role.ADMIN
        and new_role != Role.ADMIN
        and current_admin_count <= 1
    ):
        raise Conflict(LAST_ADMIN_MESSAGE)
