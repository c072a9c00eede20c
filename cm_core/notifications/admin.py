# cm_core/notifications/admin.py
from django.contrib import admin

from cm_core.notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "type", "recipient", "case", "is_read", "created_at")
    list_filter = ("type", "channel", "is_read")
    search_fields = ("title", "body", "recipient__username")
    ordering = ("-created_at",)
    readonly_fields = ("created_at", "updated_at", "read_at")
    list_select_related = ("recipient", "case")
