# cm_core/cases/transitions.py
"""
Case state machine.

TRANSITIONS is the single source of truth for which action is legal from
which status, who may trigger it and what it does to the case. Everything in
this module is pure: no ORM access, no clock, no settings.

    OPEN --assign--> PENDING_ACCEPTANCE --accept--> IN_PROGRESS
      ^                     |                           |
      +-------reject--------+                   request_completion
                                                        v
              IN_PROGRESS <--reject-- PENDING_COMPLETION_REVIEW --approve--> COMPLETED

    any non-terminal --close--> CLOSED,  --archive--> ARCHIVED
    COMPLETED --archive--> ARCHIVED
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cm_core.audit.models import CaseLogAction
from cm_core.cases.exceptions import (
    Forbidden,
    InvalidAssignee,
    InvalidTransition,
    WorkflowError,
    WorkloadExceeded,
)
from cm_core.cases.models import NON_TERMINAL_STATUSES, CaseAction, CaseStatus
from cm_core.common.permissions import MANAGER_ROLES, ROLE_ADMIN, ROLE_CASEWORKER

# Who may trigger a rule.
ACTOR_MANAGER = "manager"  # CHAIR or ADMIN
ACTOR_ASSIGNEE = "assignee"  # the case's current assignee
ACTOR_ADMIN_OR_CREATOR = "admin_or_creator"

# Whose workload a rule checks.
WORKLOAD_TARGET = "target"  # the caseworker being assigned (active = pending + in progress)
WORKLOAD_ACTOR = "actor"  # the accepting assignee (in progress only)


@dataclass(frozen=True)
class TransitionRule:
    from_status: str
    action: str
    to_status: str
    actor: str
    audit_action: str
    event_code: str
    workload: Optional[str] = None
    sets_assignee: bool = False
    clears_assignee: bool = False
    marks_completed: bool = False
    marks_closed: bool = False


def _rule(from_status, action, to_status, actor, audit_action, event_code, **flags) -> TransitionRule:
    return TransitionRule(
        from_status=from_status,
        action=action,
        to_status=to_status,
        actor=actor,
        audit_action=audit_action,
        event_code=event_code,
        **flags,
    )


def _build_table() -> dict[tuple[str, str], TransitionRule]:
    rules = [
        _rule(
            CaseStatus.OPEN, CaseAction.ASSIGN, CaseStatus.PENDING_ACCEPTANCE,
            ACTOR_MANAGER, CaseLogAction.ASSIGN, "case.assigned",
            workload=WORKLOAD_TARGET, sets_assignee=True,
        ),
        _rule(
            CaseStatus.PENDING_ACCEPTANCE, CaseAction.ACCEPT, CaseStatus.IN_PROGRESS,
            ACTOR_ASSIGNEE, CaseLogAction.ACCEPT, "case.accepted",
            workload=WORKLOAD_ACTOR,
        ),
        _rule(
            CaseStatus.PENDING_ACCEPTANCE, CaseAction.REJECT, CaseStatus.OPEN,
            ACTOR_ASSIGNEE, CaseLogAction.REJECT, "case.rejected",
            clears_assignee=True,
        ),
        _rule(
            CaseStatus.IN_PROGRESS, CaseAction.REQUEST_COMPLETION, CaseStatus.PENDING_COMPLETION_REVIEW,
            ACTOR_ASSIGNEE, CaseLogAction.REQUEST_COMPLETION, "case.completion_requested",
        ),
        _rule(
            CaseStatus.PENDING_COMPLETION_REVIEW, CaseAction.APPROVE, CaseStatus.COMPLETED,
            ACTOR_MANAGER, CaseLogAction.APPROVE, "case.completed",
            clears_assignee=True, marks_completed=True,
        ),
        _rule(
            CaseStatus.PENDING_COMPLETION_REVIEW, CaseAction.REJECT, CaseStatus.IN_PROGRESS,
            ACTOR_MANAGER, CaseLogAction.REJECT_COMPLETION, "case.completion_rejected",
        ),
        # administrative archival of a finished case
        _rule(
            CaseStatus.COMPLETED, CaseAction.ARCHIVE, CaseStatus.ARCHIVED,
            ACTOR_ADMIN_OR_CREATOR, CaseLogAction.ARCHIVE, "case.archived",
        ),
    ]

    for status in NON_TERMINAL_STATUSES:
        rules.append(
            _rule(
                status, CaseAction.CLOSE, CaseStatus.CLOSED,
                ACTOR_ADMIN_OR_CREATOR, CaseLogAction.CLOSE, "case.closed",
                clears_assignee=True, marks_closed=True,
            )
        )
        rules.append(
            _rule(
                status, CaseAction.ARCHIVE, CaseStatus.ARCHIVED,
                ACTOR_ADMIN_OR_CREATOR, CaseLogAction.ARCHIVE, "case.archived",
                clears_assignee=True, marks_closed=True,
            )
        )

    table: dict[tuple[str, str], TransitionRule] = {}
    for r in rules:
        key = (str(r.from_status), str(r.action))
        if key in table:
            raise RuntimeError(f"Duplicate transition rule for {key}")
        table[key] = r
    return table


TRANSITIONS: dict[tuple[str, str], TransitionRule] = _build_table()


def get_rule(from_status: str, action: str) -> TransitionRule | None:
    return TRANSITIONS.get((str(from_status), str(action)))


def allowed_actions(from_status: str) -> list[str]:
    return sorted(action for (status, action) in TRANSITIONS if status == str(from_status))


def _role_can_satisfy(actor_rule: str, actor_role: str | None) -> bool:
    if actor_rule == ACTOR_MANAGER:
        return actor_role in MANAGER_ROLES
    if actor_rule == ACTOR_ASSIGNEE:
        # only caseworkers are ever assigned
        return actor_role == ROLE_CASEWORKER
    if actor_rule == ACTOR_ADMIN_OR_CREATOR:
        # any role can be the creator
        return actor_role is not None
    return False


def is_allowed(action: str, from_status: str, actor_role: str | None) -> bool:
    """
    Role-level check against the table: can *some* actor with this role
    perform `action` on a case in `from_status`?

    Identity rules (is the actor the assignee / the creator) need the case and
    are applied by TransitionGuard.evaluate.
    """
    rule = get_rule(from_status, action)
    if rule is None:
        return False
    return _role_can_satisfy(rule.actor, actor_role)


# ----------------------------
# Evaluation inputs / output
# ----------------------------
@dataclass(frozen=True)
class Actor:
    id: int
    role: str | None


@dataclass(frozen=True)
class CaseSnapshot:
    id: object
    status: str
    assignee_id: int | None
    creator_id: int | None


@dataclass(frozen=True)
class AssigneeCandidate:
    id: int
    role: str | None
    is_active: bool


@dataclass(frozen=True)
class GuardDecision:
    allowed: bool
    rule: TransitionRule | None = None
    error: WorkflowError | None = None

    @property
    def to_status(self) -> str | None:
        return self.rule.to_status if self.rule else None

    @classmethod
    def allow(cls, rule: TransitionRule) -> "GuardDecision":
        return cls(allowed=True, rule=rule)

    @classmethod
    def deny(cls, error: WorkflowError, rule: TransitionRule | None = None) -> "GuardDecision":
        return cls(allowed=False, rule=rule, error=error)


class TransitionGuard:
    """
    Decides whether a transition may happen.

    Check order: legality from the current status, then actor, then target
    eligibility, then workload. The first failure wins.
    """

    def __init__(self, *, workload_limit: int):
        if workload_limit < 1:
            raise ValueError("workload_limit must be >= 1")
        self.workload_limit = workload_limit

    def workload_subject(
        self,
        *,
        case: CaseSnapshot,
        action: str,
        actor: Actor,
        target: AssigneeCandidate | None = None,
    ) -> int | None:
        """User id whose workload must be counted before evaluate(), or None."""
        rule = get_rule(case.status, action)
        if rule is None or rule.workload is None:
            return None
        if rule.workload == WORKLOAD_TARGET:
            return target.id if target is not None else None
        return actor.id

    def precheck(self, *, case: CaseSnapshot, action: str, actor: Actor) -> GuardDecision:
        """
        Legality + actor only. Lets the engine fail fast before it loads the
        target user or takes workload locks.
        """
        rule = get_rule(case.status, action)
        if rule is None:
            return GuardDecision.deny(InvalidTransition(current_status=case.status, action=action))

        denied = self._check_actor(rule, case, actor)
        if denied is not None:
            return GuardDecision.deny(denied, rule)

        return GuardDecision.allow(rule)

    def evaluate(
        self,
        *,
        case: CaseSnapshot,
        action: str,
        actor: Actor,
        target: AssigneeCandidate | None = None,
        workload: int | None = None,
    ) -> GuardDecision:
        decision = self.precheck(case=case, action=action, actor=actor)
        if not decision.allowed:
            return decision
        rule = decision.rule

        if rule.sets_assignee:
            denied = self._check_target(target)
            if denied is not None:
                return GuardDecision.deny(denied, rule)

        if rule.workload is not None:
            if workload is None:
                raise ValueError(f"{rule.action} from {rule.from_status} needs a workload count")
            if workload >= self.workload_limit:
                subject = target.id if rule.workload == WORKLOAD_TARGET else actor.id
                return GuardDecision.deny(
                    WorkloadExceeded(user_id=subject, count=workload, limit=self.workload_limit),
                    rule,
                )

        return GuardDecision.allow(rule)

    @staticmethod
    def _check_actor(rule: TransitionRule, case: CaseSnapshot, actor: Actor) -> WorkflowError | None:
        # the role gate is the same one is_allowed() applies; identity comes on top of it
        role_ok = _role_can_satisfy(rule.actor, actor.role)

        if rule.actor == ACTOR_MANAGER:
            if role_ok:
                return None
            return Forbidden(f"Only a chair or admin can {rule.action} this case.", action=rule.action)

        if rule.actor == ACTOR_ASSIGNEE:
            if role_ok and case.assignee_id is not None and case.assignee_id == actor.id:
                return None
            return Forbidden(f"Only the assigned caseworker can {rule.action} this case.", action=rule.action)

        if rule.actor == ACTOR_ADMIN_OR_CREATOR:
            if role_ok and (actor.role == ROLE_ADMIN or (case.creator_id is not None and case.creator_id == actor.id)):
                return None
            return Forbidden(f"Only an admin or the case creator can {rule.action} this case.", action=rule.action)

        return Forbidden(f"{rule.action} is not permitted.", action=rule.action)

    @staticmethod
    def _check_target(target: AssigneeCandidate | None) -> WorkflowError | None:
        if target is None:
            return InvalidAssignee("caseworker_id is required.", caseworker_id=None)
        if not target.is_active:
            return InvalidAssignee("Target user is not active.", caseworker_id=target.id)
        if target.role != ROLE_CASEWORKER:
            return InvalidAssignee("Target user is not a caseworker.", caseworker_id=target.id)
        return None
