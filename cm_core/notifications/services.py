# cm_core/notifications/services.py
from __future__ import annotations

import logging
from typing import Iterable
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from cm_core.notifications.models import Notification, NotificationChannel, NotificationType

logger = logging.getLogger(__name__)

# event_code -> (type, title, body template)
_TEMPLATES = {
    "case.assigned": (NotificationType.CASE_ASSIGNED, "案件已分配", '案件 "{title}" 已分配给您'),
    "case.accepted": (NotificationType.CASE_ACCEPTED, "案件已接受", '案件 "{title}" 已被接受'),
    "case.rejected": (NotificationType.CASE_REJECTED, "案件已拒绝", '案件 "{title}" 已被拒绝，已退回待分配'),
    "case.completion_requested": (
        NotificationType.CASE_COMPLETION_REQUESTED,
        "请求完成审批",
        '案件 "{title}" 已提交完成审批',
    ),
    "case.completed": (NotificationType.CASE_COMPLETED, "案件已完成", '案件 "{title}" 已批准完成'),
    "case.completion_rejected": (
        NotificationType.CASE_COMPLETION_REJECTED,
        "完成申请被拒绝",
        '案件 "{title}" 的完成申请被拒绝，请继续处理',
    ),
    "case.closed": (NotificationType.CASE_CLOSED, "案件已关闭", '案件 "{title}" 已关闭'),
    "case.archived": (NotificationType.CASE_ARCHIVED, "案件已归档", '案件 "{title}" 已归档'),
}

_FALLBACK = (NotificationType.CASE_STATUS_CHANGED, "案件状态变更", '案件 "{title}" 的状态已更新为 {status}')


class NotificationService:
    @staticmethod
    def notify(event, recipients: Iterable[int]) -> list[Notification]:
        """
        In-app delivery of a workflow TransitionEvent. Plugged into the
        workflow engine via settings.CASES_NOTIFIER.
        """
        kind, title, body = _TEMPLATES.get(event.event_code, _FALLBACK)
        body = body.format(title=event.case_title, status=event.to_status)
        if event.comment:
            body = f"{body}\n{event.comment}"

        created = NotificationService.notify_users_in_app(
            user_ids=recipients,
            type=kind,
            title=title,
            body=body,
            case_id=event.case_id,
            sender_id=event.actor_id,
            meta={
                "event_code": event.event_code,
                "from_status": str(event.from_status),
                "to_status": str(event.to_status),
            },
        )
        logger.info(
            "Sent %d %s notification(s) for case %s",
            len(created),
            event.event_code,
            event.case_id,
            extra={"case_id": str(event.case_id)},
        )
        return created

    @staticmethod
    @transaction.atomic
    def notify_users_in_app(
        *,
        user_ids: Iterable[int],
        type: str,
        title: str,
        body: str = "",
        case_id: UUID | None = None,
        sender_id: int | None = None,
        meta: dict | None = None,
    ) -> list[Notification]:
        objs = [
            Notification(
                recipient_id=uid,
                sender_id=sender_id,
                channel=NotificationChannel.IN_APP,
                type=type,
                title=title,
                body=body,
                case_id=case_id,
                meta=meta or {},
            )
            for uid in dict.fromkeys(user_ids)
        ]
        return Notification.objects.bulk_create(objs)

    @staticmethod
    def mark_read(*, notification_id, user_id: int) -> Notification:
        notif = Notification.objects.get(id=notification_id, recipient_id=user_id)
        if not notif.is_read:
            notif.mark_read()
            notif.save(update_fields=["is_read", "read_at", "updated_at"])
        return notif

    @staticmethod
    def mark_all_read(*, user_id: int) -> int:
        now = timezone.now()
        return Notification.objects.filter(recipient_id=user_id, is_read=False).update(
            is_read=True,
            read_at=now,
            updated_at=now,
        )
