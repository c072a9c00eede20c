# cm_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from cm_core.cases.engine import WorkflowEngine
from cm_core.cases.models import CaseAction
from cm_core.cases.services import CaseService
from cm_core.common.permissions import ROLE_ADMIN, ROLE_CASEWORKER, ROLE_CHAIR, ROLE_CLERK


def create_user(username, role=None, *, password="testpass", **extra):
    """
    Plain Django user, optionally placed in one role group.
    """
    User = get_user_model()
    user = User.objects.create_user(username=username, password=password, **extra)
    if role:
        group, _ = Group.objects.get_or_create(name=role)
        user.groups.add(group)
    return user


@pytest.fixture
def make_user(db):
    return create_user


@pytest.fixture
def admin_user(db):
    return create_user("admin1", ROLE_ADMIN)


@pytest.fixture
def chair(db):
    return create_user("chair1", ROLE_CHAIR)


@pytest.fixture
def caseworker(db):
    return create_user("worker1", ROLE_CASEWORKER)


@pytest.fixture
def other_caseworker(db):
    return create_user("worker2", ROLE_CASEWORKER)


@pytest.fixture
def clerk(db):
    return create_user("clerk1", ROLE_CLERK)


@pytest.fixture
def make_case(db, clerk):
    def _make(title="Noise complaint", created_by=None, **kwargs):
        return CaseService.create_case(
            created_by_id=(created_by or clerk).id,
            title=title,
            **kwargs,
        )

    return _make


@pytest.fixture
def case(make_case):
    return make_case()


@pytest.fixture
def engine():
    # no-op notifier keeps engine tests independent of the inbox
    class _Silent:
        @staticmethod
        def notify(event, recipients):
            return []

    return WorkflowEngine(workload_limit=5, notifier=_Silent())


@pytest.fixture
def assigned_case(engine, case, chair, caseworker):
    """A case sitting in PENDING_ACCEPTANCE for `caseworker`."""
    return engine.transition(
        case_id=case.id,
        action=CaseAction.ASSIGN,
        actor_id=chair.id,
        actor_role=ROLE_CHAIR,
        params={"caseworker_id": caseworker.id},
    )


@pytest.fixture
def in_progress_case(engine, assigned_case, caseworker):
    return engine.transition(
        case_id=assigned_case.id,
        action=CaseAction.ACCEPT,
        actor_id=caseworker.id,
        actor_role=ROLE_CASEWORKER,
    )


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    """
    Authenticated APIClient for a given user.
    """
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c

    return _client
