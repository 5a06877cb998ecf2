# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Permission resolution.

A user's effective permissions are the union of the permission bundles of
every role the user currently holds.  There is no deny rule and no
precedence between roles.

Results are memoised in a :class:`RequestContext` that lives for exactly one
inbound request (it is created by the route guard and stored on
``request.state``).  Nothing is cached across requests, so a role edit is
visible from the next request onwards.
"""

import enum
import re
from dataclasses import dataclass, field
from typing import NamedTuple

from repository import Repository

_NAME_PART = r"[A-Za-z][A-Za-z0-9_-]*"
_PERMISSION_RE = re.compile(rf"^({_NAME_PART}):({_NAME_PART})$")


class PermissionName(NamedTuple):
    """A ``resource:action`` permission split into its two halves."""

    resource: str
    action: str

    @classmethod
    def parse(cls, name: str) -> "PermissionName":
        match = _PERMISSION_RE.match(name or "")
        if not match:
            raise ValueError(f"Permission name must look like 'resource:action', got {name!r}")
        return cls(match.group(1), match.group(2))

    def __str__(self) -> str:
        return f"{self.resource}:{self.action}"


class RoutePermission(str, enum.Enum):
    """Permissions the dashboard's own routes are gated on."""

    DASHBOARD_VIEW = "dashboard:view"

    USERS_VIEW = "users:view"
    USERS_CREATE = "users:create"
    USERS_UPDATE = "users:update"

    ROLES_VIEW = "roles:view"
    ROLES_CREATE = "roles:create"
    ROLES_UPDATE = "roles:update"
    ROLES_DELETE = "roles:delete"

    PERMISSIONS_VIEW = "permissions:view"
    PERMISSIONS_CREATE = "permissions:create"
    PERMISSIONS_UPDATE = "permissions:update"
    PERMISSIONS_DELETE = "permissions:delete"

    USER_ROLES_VIEW = "user-roles:view"
    USER_ROLES_ASSIGN = "user-roles:assign"

    MENUS_VIEW = "menus:view"
    MENUS_CREATE = "menus:create"
    MENUS_UPDATE = "menus:update"
    MENUS_DELETE = "menus:delete"

    LOGIN_HISTORY_VIEW = "login-history:view"

    @property
    def parsed(self) -> PermissionName:
        return PermissionName.parse(self.value)


@dataclass
class RequestContext:
    """Per-request memo of resolved permission sets, keyed by user id."""

    permissions: dict[int, frozenset[str]] = field(default_factory=dict)


class PermissionResolver:
    def __init__(self, repo: Repository, context: RequestContext):
        self.repo = repo
        self.context = context

    def resolve(self, user_id: int) -> frozenset[str]:
        """
        Effective permission names for *user_id*.  An unknown or deleted user
        resolves to the empty set.
        """
        cached = self.context.permissions.get(user_id)
        if cached is not None:
            return cached

        names = frozenset(
            rp.permission.name
            for role in self.repo.find_roles_for_user(user_id)
            for rp in role.role_permissions
        )
        self.context.permissions[user_id] = names
        return names

    def has_permission(self, user, permission: str) -> bool:
        if isinstance(permission, RoutePermission):
            permission = permission.value
        return permission in self.resolve(user.id)
