# cm_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cm_core.audit.models import CaseLog


def list_case_logs(
    *,
    case_id: UUID,
    action: str | None = None,
    actor_id: int | None = None,
) -> QuerySet[CaseLog]:
    qs = CaseLog.objects.filter(case_id=case_id).select_related("actor")

    if action:
        qs = qs.filter(action=action)
    if actor_id is not None:
        qs = qs.filter(actor_id=actor_id)

    return qs.order_by("created_at", "id")
