import pytest

from cm_core.audit.models import CaseLog, CaseLogAction
from cm_core.cases.models import Case, CaseStatus

pytestmark = pytest.mark.django_db

BASE = "/api/v1/cases/"


def url(case, suffix=""):
    return f"{BASE}{case.id}/{suffix}"


def test_requires_authentication(api_client):
    res = api_client.get(BASE)
    assert res.status_code in (401, 403)
    assert "error" in res.json()


def test_clerk_creates_case(client_for, clerk):
    res = client_for(clerk).post(BASE, {"title": "Dog barking", "priority": "HIGH"}, format="json")

    assert res.status_code == 201
    body = res.json()
    assert body["status"] == "OPEN"
    assert body["assigned_to_id"] is None
    assert body["created_by"]["username"] == "clerk1"
    assert "ASSIGN" in body["available_actions"]


def test_caseworker_cannot_create(client_for, caseworker):
    res = client_for(caseworker).post(BASE, {"title": "x"}, format="json")
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "permission_denied"


def test_list_is_paginated_and_filterable(client_for, make_case, clerk):
    make_case(title="one")
    make_case(title="two")

    res = client_for(clerk).get(BASE, {"search": "two"})
    assert res.status_code == 200
    body = res.json()
    assert body["count"] == 1
    assert body["results"][0]["title"] == "two"


def test_list_rejects_bad_status_filter(client_for, clerk):
    res = client_for(clerk).get(BASE, {"status": "DONE"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"


def test_retrieve_unknown_case(client_for, clerk):
    res = client_for(clerk).get(f"{BASE}00000000-0000-0000-0000-000000000000/")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_found"


def test_assign_accept_flow_over_http(client_for, case, chair, caseworker):
    res = client_for(chair).post(url(case, "assign/"), {"caseworker_id": caseworker.id}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == CaseStatus.PENDING_ACCEPTANCE

    res = client_for(caseworker).post(url(case, "accept/"), {}, format="json")
    assert res.status_code == 200
    assert res.json()["status"] == CaseStatus.IN_PROGRESS

    logs = client_for(chair).get(url(case, "logs/")).json()
    assert [entry["action"] for entry in logs] == ["CREATE", "ASSIGN", "ACCEPT"]
    assert logs[1]["action_label"] == "指派案件"
    assert logs[1]["actor_username"] == "chair1"


def test_generic_transition_endpoint(client_for, case, chair, caseworker):
    res = client_for(chair).post(
        url(case, "transition/"),
        {"action": "ASSIGN", "caseworker_id": caseworker.id, "comment": "urgent"},
        format="json",
    )
    assert res.status_code == 200
    assert res.json()["assigned_to_id"] == caseworker.id


def test_invalid_transition_envelope(client_for, case, chair):
    res = client_for(chair).post(url(case, "approve/"), {}, format="json")

    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "invalid_transition"
    assert error["details"] == {"current_status": "OPEN", "action": "APPROVE"}
    assert error["request_id"]
    assert res["X-Request-Id"] == error["request_id"]


def test_workload_envelope(client_for, make_case, chair, caseworker):
    c = client_for(chair)
    for i in range(5):
        assert c.post(url(make_case(title=f"c{i}"), "assign/"), {"caseworker_id": caseworker.id}, format="json").status_code == 200

    res = c.post(url(make_case(title="sixth"), "assign/"), {"caseworker_id": caseworker.id}, format="json")
    assert res.status_code == 400
    error = res.json()["error"]
    assert error["code"] == "workload_exceeded"
    assert error["details"] == {"user_id": caseworker.id, "count": 5, "limit": 5}


def test_wrong_caseworker_gets_403(client_for, assigned_case, other_caseworker):
    res = client_for(other_caseworker).post(url(assigned_case, "accept/"), {}, format="json")
    assert res.status_code == 403
    assert res.json()["error"]["code"] == "forbidden"


def test_assign_to_missing_user_gets_404(client_for, case, chair):
    res = client_for(chair).post(url(case, "assign/"), {"caseworker_id": 999999}, format="json")
    assert res.status_code == 404
    assert res.json()["error"]["code"] == "not_found"


def test_clerk_cannot_reach_assign(client_for, case, clerk, caseworker):
    res = client_for(clerk).post(url(case, "assign/"), {"caseworker_id": caseworker.id}, format="json")
    assert res.status_code == 403


def test_patch_and_delete(client_for, case, clerk, chair):
    res = client_for(clerk).patch(url(case), {"description": "more detail"}, format="json")
    assert res.status_code == 200
    assert res.json()["description"] == "more detail"

    res = client_for(chair).delete(url(case))
    assert res.status_code == 403

    res = client_for(clerk).delete(url(case))
    assert res.status_code == 204
    assert not Case.objects.filter(pk=case.id).exists()


def test_add_note(client_for, case, clerk):
    res = client_for(clerk).post(url(case, "notes/"), {"note": "Called the complainant"}, format="json")
    assert res.status_code == 201
    assert res.json()["action"] == CaseLogAction.NOTE
    assert CaseLog.objects.filter(case=case, action=CaseLogAction.NOTE).count() == 1


def test_watch_endpoint(client_for, case, caseworker):
    assert client_for(caseworker).post(url(case, "watch/")).status_code == 200
    assert case.watchers.filter(pk=caseworker.pk).exists()
    assert client_for(caseworker).post(url(case, "unwatch/")).status_code == 200
    assert not case.watchers.exists()


def test_available_caseworkers_for_managers_only(client_for, chair, clerk, caseworker):
    res = client_for(chair).get(f"{BASE}available-caseworkers/")
    assert res.status_code == 200
    assert [row["username"] for row in res.json()] == ["worker1"]

    assert client_for(clerk).get(f"{BASE}available-caseworkers/").status_code == 403


def test_stats_endpoint(client_for, case, clerk):
    res = client_for(clerk).get(f"{BASE}stats/")
    assert res.status_code == 200
    assert res.json()["total"] == 1


def test_unversioned_alias(client_for, case, clerk):
    assert client_for(clerk).get(f"/api/cases/{case.id}/").status_code == 200


def test_caseworker_cannot_read_another_workers_case(client_for, assigned_case, caseworker, other_caseworker):
    c = client_for(other_caseworker)
    for suffix in ("", "logs/"):
        res = c.get(url(assigned_case, suffix))
        assert res.status_code == 403
        assert res.json()["error"]["code"] == "permission_denied"

    assert client_for(caseworker).get(url(assigned_case)).status_code == 200
    assert client_for(caseworker).get(url(assigned_case, "logs/")).status_code == 200


def test_caseworker_list_is_scoped(client_for, assigned_case, make_case, other_caseworker, clerk):
    queue = make_case(title="queue")

    ids = {row["id"] for row in client_for(other_caseworker).get(BASE).json()["results"]}
    assert ids == {str(queue.id)}
    assert client_for(clerk).get(BASE).json()["count"] == 2


@pytest.mark.parametrize("param", ["assigned_to_id", "created_by_id"])
def test_list_rejects_non_integer_id_filter(client_for, clerk, param):
    res = client_for(clerk).get(BASE, {param: "abc"})
    assert res.status_code == 400
    assert res.json()["error"]["code"] == "validation_error"
