# cm_core/cases/workload.py
from __future__ import annotations

from typing import Iterable

from django.conf import settings
from django.contrib.auth import get_user_model

from cm_core.cases.exceptions import NotFound
from cm_core.cases.models import Case, CaseStatus

DEFAULT_WORKLOAD_LIMIT = 5

# Cases that occupy a caseworker. Rejected/unassigned cases don't count.
ACTIVE_STATUSES = (CaseStatus.PENDING_ACCEPTANCE, CaseStatus.IN_PROGRESS)


def configured_workload_limit() -> int:
    return int(getattr(settings, "CASES_WORKLOAD_LIMIT", DEFAULT_WORKLOAD_LIMIT))


class WorkloadCounter:
    """
    The only place a caseworker's load is computed. Never cached.
    """

    @staticmethod
    def count_active(
        user_id: int,
        *,
        statuses: Iterable[str] = ACTIVE_STATUSES,
        for_update: bool = False,
    ) -> int:
        """
        Number of cases assigned to `user_id` in `statuses`.

        for_update=True locks the user's row first (SELECT ... FOR UPDATE), so
        two transactions counting the same caseworker run one after the other
        and the second sees the first one's committed write. Must be called
        inside transaction.atomic().
        """
        if for_update:
            User = get_user_model()
            locked = list(User.objects.select_for_update().filter(pk=user_id).values_list("pk", flat=True))
            if not locked:
                raise NotFound(f"User {user_id} not found.")

        return Case.objects.filter(assigned_to_id=user_id, status__in=list(statuses)).count()
