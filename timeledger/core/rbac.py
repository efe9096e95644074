from typing import Iterable
from fastapi import HTTPException, status

from timeledger.schemas.common import Role


ALL_ROLES = frozenset(Role)
ADMIN_LIKE = frozenset({Role.admin, Role.manager})

# Roles allowed to call each operation.
OPERATION_ROLES: dict[str, frozenset[Role]] = {
    "auth:me": ALL_ROLES,
    "employee:create": ADMIN_LIKE,
    "employee:read": ALL_ROLES,
    "employee:update": ADMIN_LIKE,
    "employee:delete": frozenset({Role.admin}),
    "time:clock": ALL_ROLES,
    "time:list": ALL_ROLES,
    "time:export": ADMIN_LIKE,
    "time:summary": ADMIN_LIKE,
}


def parse_role(value) -> Role | None:
    try:
        return Role(str(value))
    except ValueError:
        return None


def require_roles(user: dict, allowed: Iterable[Role]) -> None:
    role = parse_role(user.get("role", ""))
    if role is None or role not in set(allowed):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def authorize(user: dict, operation: str) -> None:
    require_roles(user, OPERATION_ROLES[operation])
