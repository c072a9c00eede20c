from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cm_core.notifications.api.serializers import (
    MarkAllReadSerializer,
    NotificationSerializer,
    UnreadCountSerializer,
)
from cm_core.notifications.models import Notification
from cm_core.notifications.selectors import notifications_qs, unread_count
from cm_core.notifications.services import NotificationService


@extend_schema(tags=["Notifications"])
class NotificationViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    The caller's own in-app inbox.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = NotificationSerializer
    queryset = Notification.objects.none()

    @extend_schema(
        parameters=[
            OpenApiParameter("is_read", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ]
    )
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        qs = notifications_qs(user_id=self.request.user.id)
        is_read = self.request.query_params.get("is_read")
        if is_read in ("true", "false"):
            qs = qs.filter(is_read=(is_read == "true"))
        kind = self.request.query_params.get("type")
        if kind:
            qs = qs.filter(type=kind)
        return qs.order_by("-created_at")

    @extend_schema(request=None, responses={200: NotificationSerializer})
    @action(methods=["POST"], detail=True, url_path="mark-read")
    def mark_read(self, request, pk=None):
        try:
            notif = NotificationService.mark_read(notification_id=pk, user_id=request.user.id)
        except (Notification.DoesNotExist, DjangoValidationError):
            raise NotFound("Notification not found.")
        return Response(NotificationSerializer(notif).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: MarkAllReadSerializer})
    @action(methods=["POST"], detail=False, url_path="mark-all-read")
    def mark_all_read(self, request):
        updated = NotificationService.mark_all_read(user_id=request.user.id)
        return Response({"updated": updated}, status=status.HTTP_200_OK)

    @extend_schema(responses={200: UnreadCountSerializer})
    @action(methods=["GET"], detail=False, url_path="unread-count")
    def unread_count(self, request):
        return Response({"unread": unread_count(user_id=request.user.id)})
