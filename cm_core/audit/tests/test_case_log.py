import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from cm_core.audit.models import CaseLog, CaseLogAction
from cm_core.audit.selectors import list_case_logs
from cm_core.audit.services import AuditService

pytestmark = pytest.mark.django_db


def test_append_returns_record(case, clerk):
    record = AuditService.append(
        case_id=case.id,
        actor_id=clerk.id,
        action=CaseLogAction.NOTE,
        description="left a voicemail",
        metadata={"channel": "phone"},
    )

    entry = CaseLog.objects.get(pk=record.id)
    assert entry.description == "left a voicemail"
    assert entry.metadata == {"channel": "phone"}
    assert record.created_at == entry.created_at


def test_log_entries_cannot_be_edited_or_deleted(case):
    entry = CaseLog.objects.get(case=case)

    entry.description = "rewritten history"
    with pytest.raises(ValidationError):
        entry.save()
    with pytest.raises(ValidationError):
        entry.delete()

    entry.refresh_from_db()
    assert entry.description != "rewritten history"


def test_labels():
    assert CaseLogAction.ASSIGN.label == "指派案件"
    assert CaseLogAction.REJECT_COMPLETION.label == "拒絕完成"
    assert CaseLogAction.NOTE.label == "手動備注"


def test_selector_orders_by_time_then_insertion(case, clerk, chair):
    ts = timezone.now()
    first = AuditService.append(case_id=case.id, actor_id=clerk.id, action=CaseLogAction.NOTE, description="a", created_at=ts)
    second = AuditService.append(case_id=case.id, actor_id=chair.id, action=CaseLogAction.NOTE, description="b", created_at=ts)

    ids = list(list_case_logs(case_id=case.id, action=CaseLogAction.NOTE).values_list("id", flat=True))
    assert ids == [first.id, second.id]

    assert list(list_case_logs(case_id=case.id, actor_id=chair.id).values_list("id", flat=True)) == [second.id]
