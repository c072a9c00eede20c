# cm_core/cases/services.py

from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils.timezone import now

from cm_core.audit.models import CaseLogAction
from cm_core.audit.services import AuditService
from cm_core.cases.exceptions import Forbidden, InvalidInput, InvalidTransition, NotFound
from cm_core.cases.models import Case, CasePriority, CaseStatus
from cm_core.common.permissions import MANAGER_ROLES, ROLE_ADMIN

logger = logging.getLogger(__name__)


class CaseService:
    """
    Case write-model operations that are NOT workflow transitions.

    Notes:
    - status / assignee are never touched here; see cm_core.cases.engine.
    - Every change appends a CaseLog in the same transaction.
    """

    EDITABLE_FIELDS = ("title", "description", "priority", "due_date", "metadata")

    # -------------------------
    # Internal helpers
    # -------------------------
    @staticmethod
    def _get(case_id: UUID, *, for_update: bool = False) -> Case:
        qs = Case.objects.select_for_update() if for_update else Case.objects.all()
        try:
            return qs.get(pk=case_id)
        except (Case.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound(f"Case {case_id} not found.")

    @staticmethod
    def _touch_updated_at(case: Case, update_fields: list[str]) -> None:
        case.updated_at = now()
        update_fields.append("updated_at")

    @staticmethod
    def _validate_priority(priority: str) -> None:
        if priority not in CasePriority.values:
            raise InvalidInput(f"Invalid priority {priority!r}.", allowed=list(CasePriority.values))

    # -------------------------
    # Create
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_case(
        *,
        created_by_id: int,
        title: str,
        description: str = "",
        priority: str = CasePriority.MEDIUM,
        due_date=None,
        metadata: Optional[dict] = None,
    ) -> Case:
        """
        New cases always start OPEN and unassigned.
        """
        title = (title or "").strip()
        if not title:
            raise InvalidInput("title is required.")
        CaseService._validate_priority(priority)

        case = Case.objects.create(
            title=title,
            description=description or "",
            priority=priority,
            due_date=due_date,
            metadata=metadata or {},
            created_by_id=created_by_id,
            status=CaseStatus.OPEN,
        )

        AuditService.append(
            case_id=case.id,
            actor_id=created_by_id,
            action=CaseLogAction.CREATE,
            description=f"Case created: {case.title}",
            metadata={"priority": case.priority},
            created_at=case.created_at,
        )
        logger.info("Case %s created by user %s", case.id, created_by_id, extra={"case_id": str(case.id)})
        return case

    # -------------------------
    # Edit (non-workflow fields)
    # -------------------------
    @staticmethod
    @transaction.atomic
    def update_case(*, case_id: UUID, actor_id: int, actor_role: str | None, changes: dict[str, Any]) -> Case:
        """
        Creator, chairs and admins may edit descriptive fields of a live case.
        Unknown keys (including status/assigned_to) are rejected.
        """
        unknown = sorted(set(changes) - set(CaseService.EDITABLE_FIELDS))
        if unknown:
            raise InvalidInput("These fields cannot be edited here.", fields=unknown)

        case = CaseService._get(case_id, for_update=True)

        if actor_role not in MANAGER_ROLES and case.created_by_id != actor_id:
            raise Forbidden("Only the creator, a chair or an admin can edit this case.", action="update")
        if case.is_terminal:
            raise InvalidTransition(current_status=case.status, action="update")

        if "title" in changes:
            changes["title"] = (changes["title"] or "").strip()
            if not changes["title"]:
                raise InvalidInput("title cannot be empty.")
        if "priority" in changes:
            CaseService._validate_priority(changes["priority"])
        if "description" in changes and changes["description"] is None:
            changes["description"] = ""
        if "metadata" in changes and changes["metadata"] is None:
            changes["metadata"] = {}

        changed_fields: list[str] = []
        for field, value in changes.items():
            if getattr(case, field) != value:
                setattr(case, field, value)
                changed_fields.append(field)

        if not changed_fields:
            return case

        logged_fields = sorted(changed_fields)
        # a transition holding the previous version must lose its compare-and-set
        case.version += 1
        changed_fields.append("version")
        CaseService._touch_updated_at(case, changed_fields)
        case.save(update_fields=changed_fields)

        AuditService.append(
            case_id=case.id,
            actor_id=actor_id,
            action=CaseLogAction.UPDATE,
            description=f"Updated: {', '.join(logged_fields)}",
            metadata={"fields": logged_fields},
            created_at=case.updated_at,
        )
        return case

    # -------------------------
    # Delete
    # -------------------------
    @staticmethod
    @transaction.atomic
    def delete_case(*, case_id: UUID, actor_id: int, actor_role: str | None) -> None:
        """
        Hard delete by an admin or the creator. Logs and notifications cascade.
        """
        case = CaseService._get(case_id, for_update=True)

        if actor_role != ROLE_ADMIN and case.created_by_id != actor_id:
            raise Forbidden("Only an admin or the case creator can delete this case.", action="delete")

        case.delete()
        logger.info("Case %s deleted by user %s", case_id, actor_id, extra={"case_id": str(case_id)})

    # -------------------------
    # Notes
    # -------------------------
    @staticmethod
    @transaction.atomic
    def add_note(*, case_id: UUID, actor_id: int, actor_role: str | None, note: str):
        note = (note or "").strip()
        if not note:
            raise InvalidInput("note is required.")

        case = CaseService._get(case_id)

        involved = actor_id in {case.created_by_id, case.assigned_to_id}
        if actor_role not in MANAGER_ROLES and not involved:
            raise Forbidden("Only people involved in the case can add notes.", action="note")

        return AuditService.append(
            case_id=case.id,
            actor_id=actor_id,
            action=CaseLogAction.NOTE,
            description=note,
        )

    # -------------------------
    # Watchers
    # -------------------------
    @staticmethod
    @transaction.atomic
    def watch(*, case_id: UUID, user_id: int) -> Case:
        case = CaseService._get(case_id)
        case.watchers.add(user_id)
        return case

    @staticmethod
    @transaction.atomic
    def unwatch(*, case_id: UUID, user_id: int) -> Case:
        case = CaseService._get(case_id)
        case.watchers.remove(user_id)
        return case
