# cm_core/audit/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class CaseLogAction(models.TextChoices):
    # Labels are what the UI renders in the case history.
    CREATE = "CREATE", "创建案件"
    UPDATE = "UPDATE", "更新案件"
    ASSIGN = "ASSIGN", "指派案件"
    ACCEPT = "ACCEPT", "接受案件"
    REJECT = "REJECT", "拒絕案件"
    REQUEST_COMPLETION = "REQUEST_COMPLETION", "請求完成"
    APPROVE = "APPROVE", "批准完成"
    REJECT_COMPLETION = "REJECT_COMPLETION", "拒絕完成"
    CLOSE = "CLOSE", "關閉案件"
    ARCHIVE = "ARCHIVE", "歸檔案件"
    NOTE = "NOTE", "手動備注"


class CaseLog(models.Model):
    """
    Immutable audit record of one action taken on a case.

    Ordered by created_at, then id (insertion order). Rows go away only
    with their case (FK cascade, which deletes at the SQL level).
    """
    id = models.BigAutoField(primary_key=True)

    case = models.ForeignKey(
        "cases.Case",
        on_delete=models.CASCADE,
        related_name="logs",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="case_logs",
        null=True,
        blank=True,
    )

    action = models.CharField(max_length=32, choices=CaseLogAction.choices, db_index=True)
    description = models.TextField(blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)

    # Set explicitly by the workflow engine so it matches the case's updated_at.
    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = "audit_case_log"
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["case", "created_at", "id"], name="caselog_case_time_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.get_action_display()} @ {self.created_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("CaseLog is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("CaseLog is immutable and cannot be deleted.")
