# cm_core/cases/selectors.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from django.core.exceptions import ValidationError
from django.db.models import Case as Cond, Count, IntegerField, Q, QuerySet, When

from cm_core.audit.selectors import list_case_logs
from cm_core.cases.models import ASSIGNED_STATUSES, Case, CasePriority, CaseStatus
from cm_core.cases.workload import ACTIVE_STATUSES, configured_workload_limit
from cm_core.common.permissions import ROLE_CASEWORKER
from cm_core.iam.selectors import users_with_role

TRUTHY = {"1", "true", "True"}

# severity order, lowest first
PRIORITY_RANK = Cond(
    *(When(priority=p, then=rank) for rank, p in enumerate(CasePriority.values)),
    default=len(CasePriority.values),
    output_field=IntegerField(),
)


def _parse_id(params: Any, name: str) -> Optional[int]:
    raw = params.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer.")


@dataclass(frozen=True)
class CaseworkerLoad:
    id: int
    username: str
    email: str
    active_cases: int
    can_accept_more: bool


class CaseSelector:
    class NotFound(Exception):
        pass

    class Forbidden(Exception):
        pass

    @staticmethod
    def visible_to(qs: QuerySet[Case], *, user_id: Optional[int], role: Optional[str]) -> QuerySet[Case]:
        """
        Caseworkers see what is assigned to them, what they created and the
        unassigned queue. Every other role sees all cases.
        """
        if role != ROLE_CASEWORKER:
            return qs
        return qs.filter(Q(assigned_to_id=user_id) | Q(assigned_to__isnull=True) | Q(created_by_id=user_id))

    @staticmethod
    def get_visible_case(*, case_id, user_id: Optional[int], role: Optional[str]) -> Case:
        case = CaseSelector.get_case(case_id=case_id)
        if role != ROLE_CASEWORKER or case.assigned_to_id is None:
            return case
        if user_id not in (case.assigned_to_id, case.created_by_id):
            raise CaseSelector.Forbidden()
        return case

    @staticmethod
    def get_case(*, case_id) -> Case:
        try:
            return Case.objects.select_related("created_by", "assigned_to", "completed_by").get(pk=case_id)
        except (Case.DoesNotExist, ValidationError, ValueError):
            raise CaseSelector.NotFound()

    @staticmethod
    def list_cases(*, user_id: Optional[int], params: Any, role: Optional[str] = None) -> QuerySet[Case]:
        """
        Query params supported:
          - status (comma separated allowed)
          - priority
          - assigned_to_id
          - created_by_id
          - mine=1|true        (assigned to me)
          - created_by_me=1|true
          - watching=1|true
          - search             (title / description, case-insensitive)
          - ordering in {created_at, updated_at, priority, due_date} (each with optional "-");
            priority orders by severity, not alphabetically

        Results are limited to what the caller's role may see (see visible_to).
        """
        status_param = params.get("status")
        priority = params.get("priority")
        assigned_to_id = _parse_id(params, "assigned_to_id")
        created_by_id = _parse_id(params, "created_by_id")
        mine = params.get("mine")
        created_by_me = params.get("created_by_me")
        watching = params.get("watching")
        search = (params.get("search") or "").strip()
        ordering = params.get("ordering")

        qs = Case.objects.select_related("created_by", "assigned_to", "completed_by")
        qs = CaseSelector.visible_to(qs, user_id=user_id, role=role)

        if status_param:
            statuses = [s.strip() for s in status_param.split(",") if s.strip()]
            invalid = sorted(set(statuses) - set(CaseStatus.values))
            if invalid:
                raise ValidationError(f"status is invalid: {invalid}. Allowed: {list(CaseStatus.values)}")
            qs = qs.filter(status__in=statuses)

        if priority:
            if priority not in CasePriority.values:
                raise ValidationError(f"priority is invalid. Allowed: {list(CasePriority.values)}")
            qs = qs.filter(priority=priority)

        if assigned_to_id is not None:
            qs = qs.filter(assigned_to_id=assigned_to_id)

        if created_by_id is not None:
            qs = qs.filter(created_by_id=created_by_id)

        for flag, lookup in ((mine, "assigned_to_id"), (created_by_me, "created_by_id"), (watching, "watchers")):
            if flag in TRUTHY:
                if not user_id:
                    raise ValidationError("This filter requires an authenticated user.")
                qs = qs.filter(**{lookup: user_id})

        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))

        allowed = {"created_at", "-created_at", "updated_at", "-updated_at", "priority", "-priority", "due_date", "-due_date"}
        if ordering:
            if ordering not in allowed:
                raise ValidationError(f"ordering is invalid. Allowed: {sorted(allowed)}")
            if ordering.lstrip("-") == "priority":
                qs = qs.annotate(priority_rank=PRIORITY_RANK)
                ordering = ordering.replace("priority", "priority_rank")
            qs = qs.order_by(ordering, "-created_at")
        else:
            qs = qs.order_by("-created_at")

        return qs.distinct()

    @staticmethod
    def list_logs(*, case_id):
        # raises NotFound for unknown ids rather than returning an empty trail
        CaseSelector.get_case(case_id=case_id)
        return list_case_logs(case_id=case_id)

    @staticmethod
    def available_caseworkers(*, limit: int | None = None) -> list[CaseworkerLoad]:
        """
        Active caseworkers with their current load, those with free capacity
        first, then lightest load, then username.
        """
        limit = limit if limit is not None else configured_workload_limit()

        workers = users_with_role(ROLE_CASEWORKER).annotate(
            active_cases=Count(
                "assigned_cases",
                filter=Q(assigned_cases__status__in=list(ACTIVE_STATUSES)),
                distinct=True,
            )
        )

        rows = [
            CaseworkerLoad(
                id=u.pk,
                username=u.get_username(),
                email=u.email or "",
                active_cases=u.active_cases,
                can_accept_more=u.active_cases < limit,
            )
            for u in workers
        ]
        rows.sort(key=lambda r: (not r.can_accept_more, r.active_cases, r.username))
        return rows

    @staticmethod
    def stats() -> dict[str, Any]:
        by_status = {s: 0 for s in CaseStatus.values}
        for row in Case.objects.values("status").annotate(n=Count("id")):
            by_status[row["status"]] = row["n"]

        by_priority = {p: 0 for p in CasePriority.values}
        for row in Case.objects.values("priority").annotate(n=Count("id")):
            by_priority[row["priority"]] = row["n"]

        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_priority": by_priority,
            "open": by_status[CaseStatus.OPEN],
            "active": sum(by_status[s] for s in ASSIGNED_STATUSES),
            "completed": by_status[CaseStatus.COMPLETED],
        }
