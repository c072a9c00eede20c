# cm_core/cases/permissions.py

from __future__ import annotations

from cm_core.common.permissions import (
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_CASEWORKER,
    ROLE_CHAIR,
    ROLE_CLERK,
    BaseRolePermission,
)

EVERYONE = set(ALL_ROLES)
MANAGERS = {ROLE_ADMIN, ROLE_CHAIR}


class CasePermission(BaseRolePermission):
    """
    Which roles may reach each CaseViewSet action at all.

    This is only the outer gate. Whether *this* actor may move *this* case
    (assignee / creator / workload rules) is decided by the workflow guard and
    CaseService, which answer with 403/400 and a specific reason.
    """
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": {ROLE_ADMIN, ROLE_CHAIR, ROLE_CLERK},
        "partial_update": EVERYONE,
        "destroy": EVERYONE,
        "stats": EVERYONE,
        "available_caseworkers": MANAGERS,
        "logs": EVERYONE,
        "notes": EVERYONE,
        "watch": EVERYONE,
        "unwatch": EVERYONE,
        # workflow
        "transition": EVERYONE,
        "assign": MANAGERS,
        "accept": {ROLE_CASEWORKER},
        "reject": {ROLE_ADMIN, ROLE_CHAIR, ROLE_CASEWORKER},
        "request_completion": {ROLE_CASEWORKER},
        "approve": MANAGERS,
        "close": EVERYONE,
        "archive": EVERYONE,
    }
