# cm_core/common/permissions.py

from __future__ import annotations

from typing import Set

from rest_framework.permissions import BasePermission, SAFE_METHODS

# Group/role names (Django auth Group names)
ROLE_ADMIN = "ADMIN"
ROLE_CHAIR = "CHAIR"
ROLE_CASEWORKER = "CASEWORKER"
ROLE_CLERK = "CLERK"

ALL_ROLES = (ROLE_ADMIN, ROLE_CHAIR, ROLE_CASEWORKER, ROLE_CLERK)

# Highest first: a user in several groups acts with the first match.
ROLE_PRECEDENCE = ALL_ROLES

MANAGER_ROLES = frozenset({ROLE_ADMIN, ROLE_CHAIR})


def user_roles(user) -> Set[str]:
    """
    Resolve roles from Django groups. Superuser is treated as ADMIN.

    Groups that are not one of ALL_ROLES are ignored.
    """
    roles: Set[str] = set()

    if not user or not getattr(user, "is_authenticated", False):
        return roles

    if getattr(user, "is_superuser", False):
        roles.add(ROLE_ADMIN)
        return roles

    if hasattr(user, "groups"):
        roles.update(
            name for name in user.groups.values_list("name", flat=True) if name in ALL_ROLES
        )

    return roles


def primary_role(user) -> str | None:
    """
    The single role a user acts with (ADMIN > CHAIR > CASEWORKER > CLERK).
    None for anonymous users and users without any role group.
    """
    roles = user_roles(user)
    for role in ROLE_PRECEDENCE:
        if role in roles:
            return role
    return None


class BaseRolePermission(BasePermission):
    """
    Coarse role-based access control at the HTTP boundary.

    - Requires authentication.
    - ADMIN bypass.
    - Uses allowed_roles_per_action for strict RBAC.
    - Unknown SAFE actions fall back to list/retrieve.

    Fine-grained rules (is the actor the assignee, the creator, ...) belong to
    the services, not here.
    """
    message = "You do not have permission to perform this action."

    # Override in subclasses: dict of action -> set of allowed roles
    allowed_roles_per_action: dict[str, set[str]] = {
        "list": set(ALL_ROLES),
        "retrieve": set(ALL_ROLES),
        "create": {ROLE_ADMIN},
        "update": {ROLE_ADMIN},
        "partial_update": {ROLE_ADMIN},
        "destroy": {ROLE_ADMIN},
    }

    def _infer_action(self, request, view) -> str | None:
        action = getattr(view, "action", None)
        if action:
            return action

        kwargs = getattr(view, "kwargs", {}) or {}
        is_detail = "pk" in kwargs or "id" in kwargs

        method = request.method.upper()
        if method in ("GET", "HEAD", "OPTIONS"):
            return "retrieve" if is_detail else "list"
        if method == "POST":
            return "create"
        if method == "PUT":
            return "update"
        if method == "PATCH":
            return "partial_update"
        if method == "DELETE":
            return "destroy"
        return None

    def has_permission(self, request, view) -> bool:
        user = request.user
        if not user or not getattr(user, "is_authenticated", False):
            return False

        roles = user_roles(user)

        if ROLE_ADMIN in roles:
            return True

        action = self._infer_action(request, view)
        allowed = self.allowed_roles_per_action.get(action)

        if allowed is None and request.method in SAFE_METHODS:
            kwargs = getattr(view, "kwargs", {}) or {}
            is_detail = "pk" in kwargs or "id" in kwargs
            allowed = self.allowed_roles_per_action.get("retrieve" if is_detail else "list")

        if allowed is not None:
            return bool(roles & allowed)

        # Unknown action => deny
        return False

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)
