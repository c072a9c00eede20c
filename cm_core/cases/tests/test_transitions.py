import pytest

from cm_core.audit.models import CaseLogAction
from cm_core.cases.exceptions import Forbidden, InvalidAssignee, InvalidTransition, WorkloadExceeded
from cm_core.cases.models import TERMINAL_STATUSES, CaseAction, CaseStatus
from cm_core.cases.transitions import (
    TRANSITIONS,
    Actor,
    AssigneeCandidate,
    CaseSnapshot,
    TransitionGuard,
    allowed_actions,
    get_rule,
    is_allowed,
)
from cm_core.common.permissions import ROLE_ADMIN, ROLE_CASEWORKER, ROLE_CHAIR, ROLE_CLERK

CREATOR, WORKER, CHAIR = 10, 20, 30


def snapshot(status, assignee_id=None):
    return CaseSnapshot(id="c1", status=status, assignee_id=assignee_id, creator_id=CREATOR)


@pytest.fixture
def guard():
    return TransitionGuard(workload_limit=5)


# ----------------------------
# Table
# ----------------------------
@pytest.mark.parametrize(
    "from_status, action, to_status",
    [
        (CaseStatus.OPEN, CaseAction.ASSIGN, CaseStatus.PENDING_ACCEPTANCE),
        (CaseStatus.PENDING_ACCEPTANCE, CaseAction.ACCEPT, CaseStatus.IN_PROGRESS),
        (CaseStatus.PENDING_ACCEPTANCE, CaseAction.REJECT, CaseStatus.OPEN),
        (CaseStatus.IN_PROGRESS, CaseAction.REQUEST_COMPLETION, CaseStatus.PENDING_COMPLETION_REVIEW),
        (CaseStatus.PENDING_COMPLETION_REVIEW, CaseAction.APPROVE, CaseStatus.COMPLETED),
        (CaseStatus.PENDING_COMPLETION_REVIEW, CaseAction.REJECT, CaseStatus.IN_PROGRESS),
        (CaseStatus.COMPLETED, CaseAction.ARCHIVE, CaseStatus.ARCHIVED),
    ],
)
def test_core_transitions(from_status, action, to_status):
    rule = get_rule(from_status, action)
    assert rule is not None
    assert rule.to_status == to_status


def test_reject_from_review_is_logged_as_completion_rejection():
    assert get_rule(CaseStatus.PENDING_COMPLETION_REVIEW, CaseAction.REJECT).audit_action == CaseLogAction.REJECT_COMPLETION
    assert get_rule(CaseStatus.PENDING_ACCEPTANCE, CaseAction.REJECT).audit_action == CaseLogAction.REJECT


def test_close_and_archive_available_from_every_live_status():
    for status in CaseStatus:
        if status in TERMINAL_STATUSES:
            assert get_rule(status, CaseAction.CLOSE) is None
            continue
        assert get_rule(status, CaseAction.CLOSE).to_status == CaseStatus.CLOSED
        assert get_rule(status, CaseAction.ARCHIVE).to_status == CaseStatus.ARCHIVED


def test_closed_and_archived_are_dead_ends():
    assert allowed_actions(CaseStatus.CLOSED) == []
    assert allowed_actions(CaseStatus.ARCHIVED) == []
    assert allowed_actions(CaseStatus.COMPLETED) == [CaseAction.ARCHIVE]


def test_terminal_targets_clear_the_assignee():
    for rule in TRANSITIONS.values():
        if rule.to_status in TERMINAL_STATUSES:
            assert rule.clears_assignee or rule.from_status in TERMINAL_STATUSES


def test_is_allowed_by_role():
    assert is_allowed(CaseAction.ASSIGN, CaseStatus.OPEN, ROLE_CHAIR)
    assert is_allowed(CaseAction.ASSIGN, CaseStatus.OPEN, ROLE_ADMIN)
    assert not is_allowed(CaseAction.ASSIGN, CaseStatus.OPEN, ROLE_CASEWORKER)
    assert not is_allowed(CaseAction.ASSIGN, CaseStatus.OPEN, ROLE_CLERK)
    assert is_allowed(CaseAction.ACCEPT, CaseStatus.PENDING_ACCEPTANCE, ROLE_CASEWORKER)
    assert not is_allowed(CaseAction.ACCEPT, CaseStatus.PENDING_ACCEPTANCE, ROLE_CHAIR)
    assert not is_allowed(CaseAction.APPROVE, CaseStatus.COMPLETED, ROLE_ADMIN)
    assert not is_allowed(CaseAction.CLOSE, CaseStatus.OPEN, None)


# ----------------------------
# Guard
# ----------------------------
def test_guard_rejects_bad_limit():
    with pytest.raises(ValueError):
        TransitionGuard(workload_limit=0)


def test_illegal_action_reports_current_status(guard):
    decision = guard.evaluate(
        case=snapshot(CaseStatus.COMPLETED),
        action=CaseAction.APPROVE,
        actor=Actor(id=CHAIR, role=ROLE_CHAIR),
    )
    assert not decision.allowed
    assert isinstance(decision.error, InvalidTransition)
    assert decision.error.details == {"current_status": "COMPLETED", "action": "APPROVE"}


def test_legality_is_checked_before_actor(guard):
    # a clerk trying an illegal action gets InvalidTransition, not Forbidden
    decision = guard.evaluate(
        case=snapshot(CaseStatus.OPEN),
        action=CaseAction.APPROVE,
        actor=Actor(id=99, role=ROLE_CLERK),
    )
    assert isinstance(decision.error, InvalidTransition)


def test_only_managers_assign(guard):
    decision = guard.evaluate(
        case=snapshot(CaseStatus.OPEN),
        action=CaseAction.ASSIGN,
        actor=Actor(id=WORKER, role=ROLE_CASEWORKER),
        target=AssigneeCandidate(id=WORKER, role=ROLE_CASEWORKER, is_active=True),
        workload=0,
    )
    assert isinstance(decision.error, Forbidden)


def test_only_assignee_accepts(guard):
    case = snapshot(CaseStatus.PENDING_ACCEPTANCE, assignee_id=WORKER)

    other = guard.evaluate(case=case, action=CaseAction.ACCEPT, actor=Actor(id=21, role=ROLE_CASEWORKER), workload=0)
    assert isinstance(other.error, Forbidden)

    mine = guard.evaluate(case=case, action=CaseAction.ACCEPT, actor=Actor(id=WORKER, role=ROLE_CASEWORKER), workload=0)
    assert mine.allowed
    assert mine.to_status == CaseStatus.IN_PROGRESS


@pytest.mark.parametrize(
    "action, status, actor",
    [
        # assignee who has since lost the caseworker role
        (CaseAction.ACCEPT, CaseStatus.PENDING_ACCEPTANCE, Actor(id=WORKER, role=ROLE_CLERK)),
        # creator with no role at all
        (CaseAction.CLOSE, CaseStatus.IN_PROGRESS, Actor(id=CREATOR, role=None)),
    ],
)
def test_identity_match_still_needs_the_role(guard, action, status, actor):
    case = snapshot(status, assignee_id=WORKER)

    assert not is_allowed(action, status, actor.role)
    decision = guard.evaluate(case=case, action=action, actor=actor, workload=0)
    assert isinstance(decision.error, Forbidden)


def test_close_by_creator_or_admin_only(guard):
    case = snapshot(CaseStatus.IN_PROGRESS, assignee_id=WORKER)
    assert guard.evaluate(case=case, action=CaseAction.CLOSE, actor=Actor(id=CREATOR, role=ROLE_CLERK)).allowed
    assert guard.evaluate(case=case, action=CaseAction.CLOSE, actor=Actor(id=1, role=ROLE_ADMIN)).allowed

    denied = guard.evaluate(case=case, action=CaseAction.CLOSE, actor=Actor(id=CHAIR, role=ROLE_CHAIR))
    assert isinstance(denied.error, Forbidden)


@pytest.mark.parametrize(
    "target",
    [
        None,
        AssigneeCandidate(id=WORKER, role=ROLE_CASEWORKER, is_active=False),
        AssigneeCandidate(id=CHAIR, role=ROLE_CHAIR, is_active=True),
    ],
)
def test_assign_requires_active_caseworker(guard, target):
    decision = guard.evaluate(
        case=snapshot(CaseStatus.OPEN),
        action=CaseAction.ASSIGN,
        actor=Actor(id=CHAIR, role=ROLE_CHAIR),
        target=target,
        workload=0,
    )
    assert isinstance(decision.error, InvalidAssignee)


def test_workload_limit_is_inclusive(guard):
    kwargs = dict(
        case=snapshot(CaseStatus.OPEN),
        action=CaseAction.ASSIGN,
        actor=Actor(id=CHAIR, role=ROLE_CHAIR),
        target=AssigneeCandidate(id=WORKER, role=ROLE_CASEWORKER, is_active=True),
    )
    assert guard.evaluate(workload=4, **kwargs).allowed

    decision = guard.evaluate(workload=5, **kwargs)
    assert isinstance(decision.error, WorkloadExceeded)
    assert decision.error.details == {"user_id": WORKER, "count": 5, "limit": 5}


def test_workload_count_is_required_when_rule_checks_it(guard):
    with pytest.raises(ValueError):
        guard.evaluate(
            case=snapshot(CaseStatus.PENDING_ACCEPTANCE, assignee_id=WORKER),
            action=CaseAction.ACCEPT,
            actor=Actor(id=WORKER, role=ROLE_CASEWORKER),
        )


def test_workload_subject(guard):
    target = AssigneeCandidate(id=WORKER, role=ROLE_CASEWORKER, is_active=True)
    chair = Actor(id=CHAIR, role=ROLE_CHAIR)
    assert guard.workload_subject(case=snapshot(CaseStatus.OPEN), action=CaseAction.ASSIGN, actor=chair, target=target) == WORKER

    worker = Actor(id=WORKER, role=ROLE_CASEWORKER)
    pending = snapshot(CaseStatus.PENDING_ACCEPTANCE, assignee_id=WORKER)
    assert guard.workload_subject(case=pending, action=CaseAction.ACCEPT, actor=worker) == WORKER
    assert guard.workload_subject(case=pending, action=CaseAction.REJECT, actor=worker) is None
