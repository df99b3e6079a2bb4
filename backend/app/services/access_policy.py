"""
access_policy.py — Role-based access decisions for passports, components and
import jobs.

Role is the only authorization axis.  Every (role, operation) pair maps to a
scope in POLICY_TABLE:

    ALL   any resource, regardless of owner
    OWN   only resources owned by the requesting user
    NONE  never

Route handlers call ``authorize`` for single resources and ``owner_filter``
for list queries; no handler branches on role names itself.

Reads by id are shareable: any authenticated user can open a passport when
given its id, while list queries stay scoped to the caller's own records for
everyone but authors.
"""

import enum
from typing import Optional


class Role(str, enum.Enum):
    AUTHOR = "author"
    MEMBER = "member"
    VIEWER = "viewer"

    @classmethod
    def parse(cls, value) -> "Role":
        """Unknown or missing roles fall back to the least privileged one."""
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.VIEWER


class Operation(str, enum.Enum):
    LIST = "list"
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    IMPORT = "import"


class Scope(str, enum.Enum):
    ALL = "all"
    OWN = "own"
    NONE = "none"


class Decision(str, enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


POLICY_TABLE: dict[tuple[Role, Operation], Scope] = {
    # author: unrestricted
    (Role.AUTHOR, Operation.LIST):   Scope.ALL,
    (Role.AUTHOR, Operation.READ):   Scope.ALL,
    (Role.AUTHOR, Operation.CREATE): Scope.ALL,
    (Role.AUTHOR, Operation.UPDATE): Scope.ALL,
    (Role.AUTHOR, Operation.DELETE): Scope.ALL,
    (Role.AUTHOR, Operation.IMPORT): Scope.ALL,
    # member: works on their own records, never deletes
    (Role.MEMBER, Operation.LIST):   Scope.OWN,
    (Role.MEMBER, Operation.READ):   Scope.ALL,
    (Role.MEMBER, Operation.CREATE): Scope.OWN,
    (Role.MEMBER, Operation.UPDATE): Scope.OWN,
    (Role.MEMBER, Operation.DELETE): Scope.NONE,
    (Role.MEMBER, Operation.IMPORT): Scope.OWN,
    # viewer: read only
    (Role.VIEWER, Operation.LIST):   Scope.OWN,
    (Role.VIEWER, Operation.READ):   Scope.ALL,
    (Role.VIEWER, Operation.CREATE): Scope.NONE,
    (Role.VIEWER, Operation.UPDATE): Scope.NONE,
    (Role.VIEWER, Operation.DELETE): Scope.NONE,
    (Role.VIEWER, Operation.IMPORT): Scope.NONE,
}


def scope_for(role, operation: Operation) -> Scope:
    return POLICY_TABLE.get((Role.parse(role), Operation(operation)), Scope.NONE)


def can_perform(role, operation: Operation) -> bool:
    """True if the role may perform the operation on at least its own resources."""
    return scope_for(role, operation) is not Scope.NONE


def authorize(
    role,
    operation: Operation,
    resource_owner_id: Optional[str],
    requesting_user_id: str,
) -> Decision:
    """
    Decide whether ``requesting_user_id`` acting as ``role`` may apply
    ``operation`` to a resource owned by ``resource_owner_id``.

    For CREATE the owner is the requesting user, so OWN scope always allows.
    """
    scope = scope_for(role, operation)
    if scope is Scope.ALL:
        return Decision.ALLOW
    if scope is Scope.OWN and resource_owner_id is not None and resource_owner_id == requesting_user_id:
        return Decision.ALLOW
    return Decision.DENY


def owner_filter(role, operation: Operation, requesting_user_id: str) -> Optional[str]:
    """
    Owner id that list queries must be filtered by, or None for no filter.

    Any scope short of ALL is narrowed to the caller's own records.
    """
    if scope_for(role, operation) is Scope.ALL:
        return None
    return requesting_user_id
