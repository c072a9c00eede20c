# cm_core/audit/admin.py
from django.contrib import admin

from cm_core.audit.models import CaseLog


@admin.register(CaseLog)
class CaseLogAdmin(admin.ModelAdmin):
    list_display = ("id", "case", "action", "actor", "created_at")
    list_filter = ("action",)
    search_fields = ("case__id", "case__title", "description")
    ordering = ("-created_at", "-id")
    list_select_related = ("case", "actor")

    # Append-only: visible, never editable from the admin.
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
