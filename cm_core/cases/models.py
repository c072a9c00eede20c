# cm_core/cases/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from cm_core.common.models import UUIDModel


class CaseStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    PENDING_ACCEPTANCE = "PENDING_ACCEPTANCE", "Pending acceptance"
    IN_PROGRESS = "IN_PROGRESS", "In progress"
    PENDING_COMPLETION_REVIEW = "PENDING_COMPLETION_REVIEW", "Pending completion review"
    COMPLETED = "COMPLETED", "Completed"
    CLOSED = "CLOSED", "Closed"
    ARCHIVED = "ARCHIVED", "Archived"


# Statuses in which a case must have an assignee (and only these).
ASSIGNED_STATUSES = frozenset({
    CaseStatus.PENDING_ACCEPTANCE,
    CaseStatus.IN_PROGRESS,
    CaseStatus.PENDING_COMPLETION_REVIEW,
})

TERMINAL_STATUSES = frozenset({
    CaseStatus.COMPLETED,
    CaseStatus.CLOSED,
    CaseStatus.ARCHIVED,
})

NON_TERMINAL_STATUSES = tuple(s for s in CaseStatus if s not in TERMINAL_STATUSES)


class CasePriority(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"
    URGENT = "URGENT", "Urgent"


class CaseAction(models.TextChoices):
    """
    Workflow actions. REJECT means "decline the assignment" from
    PENDING_ACCEPTANCE and "send back to work" from PENDING_COMPLETION_REVIEW.
    """
    ASSIGN = "ASSIGN", "Assign"
    ACCEPT = "ACCEPT", "Accept"
    REJECT = "REJECT", "Reject"
    REQUEST_COMPLETION = "REQUEST_COMPLETION", "Request completion"
    APPROVE = "APPROVE", "Approve"
    CLOSE = "CLOSE", "Close"
    ARCHIVE = "ARCHIVE", "Archive"


class Case(UUIDModel):
    """
    A unit of work moved through the fixed lifecycle by the workflow engine.

    status / assigned_to / completed_* / closed_at are written only by
    cm_core.cases.engine; everything else by CaseService. Both bump version.
    """
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=32,
        choices=CaseStatus.choices,
        default=CaseStatus.OPEN,
        db_index=True,
    )
    priority = models.CharField(
        max_length=16,
        choices=CasePriority.choices,
        default=CasePriority.MEDIUM,
        db_index=True,
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="created_cases",
    )
    assigned_to = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assigned_cases",
        null=True,
        blank=True,
    )
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approved_cases",
        null=True,
        blank=True,
    )
    watchers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name="watched_cases",
        blank=True,
    )

    due_date = models.DateTimeField(null=True, blank=True, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    # attachments, structured extras; never read by the workflow
    metadata = models.JSONField(default=dict, blank=True)

    # bumped on every workflow write; compare-and-set key
    version = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "cases_case"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["assigned_to", "status"], name="case_assignee_status_idx"),
            models.Index(fields=["status", "priority", "created_at"], name="case_status_prio_idx"),
            models.Index(fields=["created_by", "created_at"], name="case_creator_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(assigned_to__isnull=False, status__in=sorted(ASSIGNED_STATUSES))
                    | (Q(assigned_to__isnull=True) & ~Q(status__in=sorted(ASSIGNED_STATUSES)))
                ),
                name="ck_case_assignee_matches_status",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.title} [{self.status}]"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
