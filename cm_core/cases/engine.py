# cm_core/cases/engine.py
"""
Workflow engine: the only writer of a case's status and assignee.

One call to WorkflowEngine.transition() =
  load case -> guard (with a fresh, locked workload count) -> one UPDATE
  -> one CaseLog row, all inside a single transaction.atomic() block,
  then a post-commit notification that can never undo or fail the call.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from functools import partial
from typing import Any, Mapping
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone
from django.utils.module_loading import import_string

from cm_core.audit.models import CaseLogAction
from cm_core.audit.services import AuditService
from cm_core.cases.exceptions import Conflict, InvalidAssignee, NotFound
from cm_core.cases.models import Case, CaseAction, CaseStatus
from cm_core.cases.transitions import (
    WORKLOAD_TARGET,
    Actor,
    AssigneeCandidate,
    CaseSnapshot,
    TransitionGuard,
    TransitionRule,
)
from cm_core.cases.workload import ACTIVE_STATUSES, WorkloadCounter, configured_workload_limit
from cm_core.common.permissions import ROLE_CHAIR
from cm_core.iam.selectors import get_user, role_of, users_with_role

logger = logging.getLogger(__name__)

DEFAULT_NOTIFIER = "cm_core.notifications.services.NotificationService"

_DESCRIPTIONS = {
    CaseLogAction.ASSIGN: "Assigned to {assignee}.",
    CaseLogAction.ACCEPT: "Assignment accepted.",
    CaseLogAction.REJECT: "Assignment declined; case returned to the queue.",
    CaseLogAction.REQUEST_COMPLETION: "Completion requested.",
    CaseLogAction.APPROVE: "Completion approved.",
    CaseLogAction.REJECT_COMPLETION: "Completion rejected; case returned to the caseworker.",
    CaseLogAction.CLOSE: "Case closed.",
    CaseLogAction.ARCHIVE: "Case archived.",
}


class StaleCaseError(Exception):
    """The case row changed between our read and our compare-and-set write."""


# serialization_failure, deadlock_detected, lock_not_available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def is_lock_failure(exc: BaseException) -> bool:
    """
    True for OperationalErrors caused by lock contention, which a fresh attempt
    can resolve. Connection loss and other outages are not retried.
    """
    if isinstance(exc, StaleCaseError):
        return True
    if not isinstance(exc, OperationalError):
        return False
    cause = exc.__cause__
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate:
        return sqlstate in RETRYABLE_SQLSTATES
    # SQLite reports contention only through the message
    return "database is locked" in str(exc)


@dataclass(frozen=True)
class TransitionEvent:
    case_id: UUID
    case_title: str
    action: str
    event_code: str
    from_status: str
    to_status: str
    actor_id: int
    creator_id: int | None
    assignee_id: int | None
    previous_assignee_id: int | None
    comment: str
    occurred_at: datetime

    def as_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["case_id"] = str(self.case_id)
        payload["occurred_at"] = self.occurred_at.isoformat()
        return payload


def resolve_recipients(event: TransitionEvent) -> list[int]:
    """
    Creator, current and previous assignee, watchers; plus every active chair
    when sign-off is requested. Never the actor.
    """
    ids: set[int | None] = {event.creator_id, event.assignee_id, event.previous_assignee_id}
    ids.update(
        Case.watchers.through.objects.filter(case_id=event.case_id).values_list("user_id", flat=True)
    )
    if event.action == CaseAction.REQUEST_COMPLETION:
        ids.update(users_with_role(ROLE_CHAIR).values_list("pk", flat=True))

    ids.discard(None)
    ids.discard(event.actor_id)
    return sorted(ids)


class WorkflowEngine:
    MAX_ATTEMPTS = 2

    def __init__(self, *, workload_limit: int | None = None, notifier=None):
        if workload_limit is None:
            workload_limit = configured_workload_limit()
        self.guard = TransitionGuard(workload_limit=workload_limit)
        self._notifier = notifier

    # ----------------------------
    # Public API
    # ----------------------------
    def transition(
        self,
        *,
        case_id,
        action: str,
        actor_id: int,
        actor_role: str | None,
        params: Mapping[str, Any] | None = None,
        comment: str = "",
    ) -> Case:
        """
        Apply `action` to the case on behalf of the actor and return the
        updated case.

        Raises NotFound, Forbidden, InvalidTransition, WorkloadExceeded,
        InvalidAssignee (all before any write) or Conflict when a concurrent
        write wins twice in a row.
        """
        actor = Actor(id=actor_id, role=actor_role)
        action = str(action)
        params = dict(params or {})
        comment = (comment or "").strip()

        for attempt in range(1, self.MAX_ATTEMPTS + 1):
            try:
                with transaction.atomic():
                    case, event = self._apply(case_id=case_id, action=action, actor=actor, params=params, comment=comment)
                    transaction.on_commit(partial(self._dispatch, event))
            except (StaleCaseError, OperationalError) as exc:
                if not is_lock_failure(exc):
                    logger.exception("Database failure during %s on case %s", action, case_id)
                    raise
                if attempt < self.MAX_ATTEMPTS:
                    logger.info("Retrying %s on case %s after concurrent modification: %s", action, case_id, exc)
                    continue
                logger.warning("Giving up %s on case %s after %d attempts: %s", action, case_id, attempt, exc)
                raise Conflict(
                    "The case was modified concurrently. Please retry.",
                    case_id=str(case_id),
                    action=action,
                ) from exc
            except DatabaseError:
                logger.exception("Database failure during %s on case %s", action, case_id)
                raise

            logger.info(
                "Case %s: %s %s -> %s by user %s",
                case.pk,
                action,
                event.from_status,
                event.to_status,
                actor.id,
                extra={"case_id": str(case.pk), "event_code": event.event_code, "attempt": attempt},
            )
            return case

        raise AssertionError("unreachable")

    # ----------------------------
    # One attempt (runs inside transaction.atomic)
    # ----------------------------
    def _apply(self, *, case_id, action: str, actor: Actor, params: dict, comment: str):
        case = self._load_case(case_id)
        snapshot = CaseSnapshot(
            id=case.pk,
            status=case.status,
            assignee_id=case.assigned_to_id,
            creator_id=case.created_by_id,
        )

        pre = self.guard.precheck(case=snapshot, action=action, actor=actor)
        if not pre.allowed:
            raise pre.error

        target_user, target = None, None
        if pre.rule.sets_assignee:
            target_user, target = self._load_target(params.get("caseworker_id"))

        workload = None
        subject = self.guard.workload_subject(case=snapshot, action=action, actor=actor, target=target)
        if subject is not None:
            statuses = ACTIVE_STATUSES if pre.rule.workload == WORKLOAD_TARGET else (CaseStatus.IN_PROGRESS,)
            workload = WorkloadCounter.count_active(subject, statuses=statuses, for_update=True)

        decision = self.guard.evaluate(case=snapshot, action=action, actor=actor, target=target, workload=workload)
        if not decision.allowed:
            raise decision.error
        rule = decision.rule

        ts = timezone.now()
        if case.updated_at and ts < case.updated_at:
            ts = case.updated_at

        changes = self._changes_for(rule, actor=actor, target=target, ts=ts)
        updated = Case.objects.filter(pk=case.pk, version=case.version).update(
            version=F("version") + 1,
            **changes,
        )
        if updated != 1:
            raise StaleCaseError(f"case {case.pk} changed since version {case.version}")

        previous_assignee_id = case.assigned_to_id
        new_assignee_id = changes.get("assigned_to_id", previous_assignee_id)

        AuditService.append(
            case_id=case.pk,
            actor_id=actor.id,
            action=rule.audit_action,
            description=self._describe(rule, case=case, target_user=target_user, comment=comment),
            metadata=self._audit_metadata(
                rule,
                comment=comment,
                previous_assignee_id=previous_assignee_id,
                new_assignee_id=new_assignee_id,
            ),
            created_at=ts,
        )

        case.refresh_from_db()

        event = TransitionEvent(
            case_id=case.pk,
            case_title=case.title,
            action=rule.action,
            event_code=rule.event_code,
            from_status=rule.from_status,
            to_status=rule.to_status,
            actor_id=actor.id,
            creator_id=case.created_by_id,
            assignee_id=case.assigned_to_id,
            previous_assignee_id=previous_assignee_id if previous_assignee_id != case.assigned_to_id else None,
            comment=comment,
            occurred_at=ts,
        )
        return case, event

    # ----------------------------
    # Helpers
    # ----------------------------
    @staticmethod
    def _load_case(case_id) -> Case:
        try:
            return Case.objects.get(pk=case_id)
        except (Case.DoesNotExist, ValueError, DjangoValidationError):
            raise NotFound(f"Case {case_id} not found.")

    @staticmethod
    def _load_target(raw_id):
        if raw_id in (None, ""):
            return None, None
        try:
            user_id = int(raw_id)
        except (TypeError, ValueError):
            raise InvalidAssignee("caseworker_id must be an integer.", caseworker_id=str(raw_id))

        user = get_user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found.", caseworker_id=user_id)
        return user, AssigneeCandidate(id=user.pk, role=role_of(user), is_active=user.is_active)

    @staticmethod
    def _changes_for(rule: TransitionRule, *, actor: Actor, target: AssigneeCandidate | None, ts) -> dict:
        changes: dict[str, Any] = {"status": rule.to_status, "updated_at": ts}
        if rule.sets_assignee:
            changes["assigned_to_id"] = target.id
        if rule.clears_assignee:
            changes["assigned_to_id"] = None
        if rule.marks_completed:
            changes["completed_at"] = ts
            changes["completed_by_id"] = actor.id
        if rule.marks_closed:
            changes["closed_at"] = ts
        return changes

    @staticmethod
    def _describe(rule: TransitionRule, *, case: Case, target_user, comment: str) -> str:
        template = _DESCRIPTIONS.get(rule.audit_action, "{action}.")
        assignee = f"{target_user.get_username()} (ID: {target_user.pk})" if target_user is not None else ""
        text = template.format(assignee=assignee, action=rule.action)
        text = f"{text} [{rule.from_status} -> {rule.to_status}]"
        if comment:
            text = f"{text} {comment}"
        return text

    @staticmethod
    def _audit_metadata(rule: TransitionRule, *, comment: str, previous_assignee_id, new_assignee_id) -> dict:
        meta: dict[str, Any] = {
            "action": str(rule.action),
            "from_status": str(rule.from_status),
            "to_status": str(rule.to_status),
            "assignee_id": new_assignee_id,
        }
        if previous_assignee_id != new_assignee_id:
            meta["previous_assignee_id"] = previous_assignee_id
        if comment:
            meta["comment"] = comment
        return meta

    def _resolve_notifier(self):
        if self._notifier is None:
            self._notifier = import_string(getattr(settings, "CASES_NOTIFIER", DEFAULT_NOTIFIER))
        return self._notifier

    def _dispatch(self, event: TransitionEvent) -> None:
        """
        Post-commit, best effort. The transition is already durable; a failure
        here is logged and dropped.
        """
        try:
            recipients = resolve_recipients(event)
            if not recipients:
                return
            self._resolve_notifier().notify(event, recipients)
        except Exception:
            logger.exception(
                "Notification dispatch failed for %s on case %s",
                event.event_code,
                event.case_id,
                extra={"case_id": str(event.case_id), "event_code": event.event_code},
            )
