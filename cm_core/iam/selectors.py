# cm_core/iam/selectors.py
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models import Q, QuerySet

from cm_core.common.permissions import ROLE_ADMIN, primary_role


def get_user(user_id):
    User = get_user_model()
    try:
        return User.objects.get(pk=user_id)
    except (User.DoesNotExist, ValueError, TypeError):
        return None


def users_with_role(role: str, *, active_only: bool = True) -> QuerySet:
    """
    Users holding `role` through their groups. Superusers count as ADMIN.
    """
    User = get_user_model()
    cond = Q(groups__name=role)
    if role == ROLE_ADMIN:
        cond |= Q(is_superuser=True)

    qs = User.objects.filter(cond)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.distinct().order_by("username")


def role_of(user) -> str | None:
    return primary_role(user)
