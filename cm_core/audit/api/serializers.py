# cm_core/audit/api/serializers.py
from rest_framework import serializers

from cm_core.audit.models import CaseLog


class CaseLogSerializer(serializers.ModelSerializer):
    case_id = serializers.UUIDField(read_only=True)
    actor_id = serializers.IntegerField(read_only=True, allow_null=True)
    actor_username = serializers.CharField(source="actor.username", read_only=True, default=None)

    # Human label, e.g. "指派案件"
    action_label = serializers.CharField(source="get_action_display", read_only=True)

    class Meta:
        model = CaseLog
        fields = [
            "id",
            "case_id",
            "actor_id",
            "actor_username",
            "action",
            "action_label",
            "description",
            "metadata",
            "created_at",
        ]
        read_only_fields = fields
