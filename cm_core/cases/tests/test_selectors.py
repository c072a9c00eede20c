import pytest
from django.core.exceptions import ValidationError
from django.http import QueryDict

from cm_core.cases.models import CaseAction, CasePriority, CaseStatus
from cm_core.cases.selectors import CaseSelector
from cm_core.common.permissions import ROLE_CASEWORKER, ROLE_CHAIR, ROLE_CLERK

pytestmark = pytest.mark.django_db


def q(s=""):
    return QueryDict(s)


def test_filters(engine, make_case, chair, caseworker, clerk):
    a = make_case(title="Loud music", priority=CasePriority.HIGH)
    b = make_case(title="Pothole", description="on main street")
    make_case(title="Graffiti", created_by=chair)
    engine.transition(
        case_id=a.id,
        action=CaseAction.ASSIGN,
        actor_id=chair.id,
        actor_role=ROLE_CHAIR,
        params={"caseworker_id": caseworker.id},
    )

    assert {c.id for c in CaseSelector.list_cases(user_id=clerk.id, params=q("status=PENDING_ACCEPTANCE"))} == {a.id}
    assert CaseSelector.list_cases(user_id=clerk.id, params=q("status=OPEN,PENDING_ACCEPTANCE")).count() == 3
    assert {c.id for c in CaseSelector.list_cases(user_id=clerk.id, params=q("priority=HIGH"))} == {a.id}
    assert {c.id for c in CaseSelector.list_cases(user_id=caseworker.id, params=q("mine=1"))} == {a.id}
    assert CaseSelector.list_cases(user_id=clerk.id, params=q("created_by_me=true")).count() == 2
    assert {c.id for c in CaseSelector.list_cases(user_id=clerk.id, params=q("search=main"))} == {b.id}

    b.watchers.add(caseworker)
    assert {c.id for c in CaseSelector.list_cases(user_id=caseworker.id, params=q("watching=1"))} == {b.id}


@pytest.mark.parametrize(
    "query",
    ["status=DONE", "priority=CRITICAL", "ordering=title", "assigned_to_id=abc", "created_by_id=1.5"],
)
def test_bad_filters_are_rejected(clerk, query):
    with pytest.raises(ValidationError):
        CaseSelector.list_cases(user_id=clerk.id, params=q(query))


def test_get_case_not_found():
    with pytest.raises(CaseSelector.NotFound):
        CaseSelector.get_case(case_id="nope")


def test_available_caseworkers_sorted_by_capacity(engine, make_case, chair, caseworker, other_caseworker, make_user):
    make_user("zed", ROLE_CASEWORKER)
    make_user("gone", ROLE_CASEWORKER, is_active=False)
    for i in range(2):
        engine.transition(
            case_id=make_case(title=f"c{i}").id,
            action=CaseAction.ASSIGN,
            actor_id=chair.id,
            actor_role=ROLE_CHAIR,
            params={"caseworker_id": caseworker.id},
        )

    rows = CaseSelector.available_caseworkers(limit=2)

    assert [r.username for r in rows] == ["worker2", "zed", "worker1"]
    assert rows[-1].active_cases == 2
    assert rows[-1].can_accept_more is False
    assert rows[0].can_accept_more is True


def test_stats(engine, make_case, clerk, chair, caseworker):
    a = make_case()
    make_case(priority=CasePriority.LOW)
    engine.transition(
        case_id=a.id,
        action=CaseAction.ASSIGN,
        actor_id=chair.id,
        actor_role=ROLE_CHAIR,
        params={"caseworker_id": caseworker.id},
    )

    stats = CaseSelector.stats()
    assert stats["total"] == 2
    assert stats["open"] == 1
    assert stats["active"] == 1
    assert stats["completed"] == 0
    assert stats["by_status"][CaseStatus.PENDING_ACCEPTANCE] == 1
    assert stats["by_priority"][CasePriority.LOW] == 1
    assert set(stats["by_status"]) == set(CaseStatus.values)


@pytest.mark.parametrize(
    "ordering, expected",
    [
        ("priority", ["LOW", "MEDIUM", "HIGH", "URGENT"]),
        ("-priority", ["URGENT", "HIGH", "MEDIUM", "LOW"]),
    ],
)
def test_priority_orders_by_severity(make_case, clerk, ordering, expected):
    for p in (CasePriority.HIGH, CasePriority.LOW, CasePriority.URGENT, CasePriority.MEDIUM):
        make_case(title=p.label, priority=p)

    rows = CaseSelector.list_cases(user_id=clerk.id, params=q(f"ordering={ordering}"))
    assert [c.priority for c in rows] == expected


def test_caseworker_sees_own_created_and_unassigned(engine, make_case, chair, caseworker, other_caseworker, clerk):
    unassigned = make_case(title="queue")
    mine = make_case(title="mine")
    theirs = make_case(title="theirs")
    for c, worker in ((mine, caseworker), (theirs, other_caseworker)):
        engine.transition(
            case_id=c.id,
            action=CaseAction.ASSIGN,
            actor_id=chair.id,
            actor_role=ROLE_CHAIR,
            params={"caseworker_id": worker.id},
        )

    seen = {c.id for c in CaseSelector.list_cases(user_id=caseworker.id, params=q(), role=ROLE_CASEWORKER)}
    assert seen == {unassigned.id, mine.id}
    assert CaseSelector.list_cases(user_id=clerk.id, params=q(), role=ROLE_CLERK).count() == 3
    assert CaseSelector.list_cases(user_id=chair.id, params=q(), role=ROLE_CHAIR).count() == 3

    assert CaseSelector.get_visible_case(case_id=mine.id, user_id=caseworker.id, role=ROLE_CASEWORKER) == mine
    assert CaseSelector.get_visible_case(case_id=unassigned.id, user_id=caseworker.id, role=ROLE_CASEWORKER) == unassigned
    with pytest.raises(CaseSelector.Forbidden):
        CaseSelector.get_visible_case(case_id=theirs.id, user_id=caseworker.id, role=ROLE_CASEWORKER)


def test_id_filters_match_exactly(engine, make_case, chair, caseworker, clerk):
    a = make_case(title="a")
    make_case(title="b", created_by=chair)
    engine.transition(
        case_id=a.id,
        action=CaseAction.ASSIGN,
        actor_id=chair.id,
        actor_role=ROLE_CHAIR,
        params={"caseworker_id": caseworker.id},
    )

    assert [c.id for c in CaseSelector.list_cases(user_id=clerk.id, params=q(f"assigned_to_id={caseworker.id}"))] == [a.id]
    assert CaseSelector.list_cases(user_id=clerk.id, params=q(f"created_by_id={chair.id}")).count() == 1
