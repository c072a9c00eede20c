# cm_core/notifications/models.py
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from cm_core.common.models import UUIDModel


class NotificationType(models.TextChoices):
    CASE_ASSIGNED = "CASE_ASSIGNED", "Case assigned"
    CASE_ACCEPTED = "CASE_ACCEPTED", "Case accepted"
    CASE_REJECTED = "CASE_REJECTED", "Case rejected"
    CASE_COMPLETION_REQUESTED = "CASE_COMPLETION_REQUESTED", "Completion requested"
    CASE_COMPLETED = "CASE_COMPLETED", "Case completed"
    CASE_COMPLETION_REJECTED = "CASE_COMPLETION_REJECTED", "Completion rejected"
    CASE_CLOSED = "CASE_CLOSED", "Case closed"
    CASE_ARCHIVED = "CASE_ARCHIVED", "Case archived"
    CASE_STATUS_CHANGED = "CASE_STATUS_CHANGED", "Case status changed"


class NotificationChannel(models.TextChoices):
    IN_APP = "IN_APP", "In App"
    EMAIL = "EMAIL", "Email"


class Notification(UUIDModel):
    """
    Delivery record per user. Only IN_APP is written today.
    """
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="sent_notifications",
        null=True,
        blank=True,
    )

    type = models.CharField(
        max_length=32,
        choices=NotificationType.choices,
        default=NotificationType.CASE_STATUS_CHANGED,
        db_index=True,
    )
    channel = models.CharField(
        max_length=16,
        choices=NotificationChannel.choices,
        default=NotificationChannel.IN_APP,
        db_index=True,
    )

    title = models.CharField(max_length=255)
    body = models.TextField(blank=True, default="")

    case = models.ForeignKey(
        "cases.Case",
        null=True,
        blank=True,
        on_delete=models.CASCADE,
        related_name="notifications",
    )

    is_read = models.BooleanField(default=False, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)

    meta = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "notifications_notification"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["recipient", "is_read", "created_at"], name="notif_inbox_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.type} -> {self.recipient_id}"

    def mark_read(self) -> None:
        if not self.is_read:
            self.is_read = True
            self.read_at = timezone.now()
