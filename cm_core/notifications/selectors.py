# cm_core/notifications/selectors.py
from __future__ import annotations

from django.db.models import QuerySet

from cm_core.notifications.models import Notification, NotificationChannel


def notifications_qs(*, user_id: int) -> QuerySet[Notification]:
    return Notification.objects.filter(
        recipient_id=user_id,
        channel=NotificationChannel.IN_APP,
    )


def unread_count(*, user_id: int) -> int:
    return notifications_qs(user_id=user_id).filter(is_read=False).count()
