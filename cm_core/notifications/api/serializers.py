from rest_framework import serializers

from cm_core.notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    case_id = serializers.UUIDField(read_only=True, allow_null=True)
    sender_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = Notification
        fields = [
            "id",
            "type",
            "title",
            "body",
            "channel",
            "case_id",
            "sender_id",
            "is_read",
            "read_at",
            "created_at",
            "meta",
        ]
        read_only_fields = fields


class UnreadCountSerializer(serializers.Serializer):
    unread = serializers.IntegerField()


class MarkAllReadSerializer(serializers.Serializer):
    updated = serializers.IntegerField()
