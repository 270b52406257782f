from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    VIEWER = "viewer"
    CLIENT = "client"


ROLE_VALUES: list[str] = [role.value for role in Role]

PRIVILEGED_ROLES = frozenset({Role.ADMIN.value})
WRITE_ROLES = (Role.ADMIN.value, Role.STAFF.value)
STAFF_ROLES = (Role.ADMIN.value, Role.STAFF.value, Role.VIEWER.value)


def is_privileged(role: str | None) -> bool:
    return (role or "").strip().lower() in PRIVILEGED_ROLES
