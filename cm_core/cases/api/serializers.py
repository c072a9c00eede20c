# cm_core/cases/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cm_core.cases.models import Case, CaseAction, CasePriority
from cm_core.cases.transitions import allowed_actions


class UserMiniSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()


class CaseSerializer(serializers.ModelSerializer):
    created_by_id = serializers.IntegerField(read_only=True)
    assigned_to_id = serializers.IntegerField(read_only=True, allow_null=True)
    completed_by_id = serializers.IntegerField(read_only=True, allow_null=True)
    created_by = UserMiniSerializer(read_only=True)
    assigned_to = UserMiniSerializer(read_only=True, allow_null=True)
    available_actions = serializers.SerializerMethodField()

    class Meta:
        model = Case
        fields = [
            "id",
            "title",
            "description",
            "status",
            "priority",
            "created_by_id",
            "created_by",
            "assigned_to_id",
            "assigned_to",
            "completed_by_id",
            "due_date",
            "completed_at",
            "closed_at",
            "metadata",
            "version",
            "available_actions",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_available_actions(self, obj: Case) -> list[str]:
        return allowed_actions(obj.status)


class CaseCreateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, default="")
    priority = serializers.ChoiceField(choices=CasePriority.choices, default=CasePriority.MEDIUM)
    due_date = serializers.DateTimeField(required=False, allow_null=True, default=None)
    metadata = serializers.JSONField(required=False, default=dict)


class CaseUpdateSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=255, required=False)
    description = serializers.CharField(required=False, allow_blank=True)
    priority = serializers.ChoiceField(choices=CasePriority.choices, required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    metadata = serializers.JSONField(required=False)


class TransitionRequestSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=CaseAction.choices)
    caseworker_id = serializers.IntegerField(required=False, allow_null=True)
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class ActionCommentSerializer(serializers.Serializer):
    comment = serializers.CharField(required=False, allow_blank=True, default="")


class AssignRequestSerializer(ActionCommentSerializer):
    caseworker_id = serializers.IntegerField()


class NoteRequestSerializer(serializers.Serializer):
    note = serializers.CharField()


class CaseworkerLoadSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    username = serializers.CharField()
    email = serializers.CharField(allow_blank=True)
    active_cases = serializers.IntegerField()
    can_accept_more = serializers.BooleanField()


class CaseStatsSerializer(serializers.Serializer):
    total = serializers.IntegerField()
    open = serializers.IntegerField()
    active = serializers.IntegerField()
    completed = serializers.IntegerField()
    by_status = serializers.DictField(child=serializers.IntegerField())
    by_priority = serializers.DictField(child=serializers.IntegerField())
