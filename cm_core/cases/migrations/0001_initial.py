import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Case",
            fields=[
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=255)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("OPEN", "Open"),
                            ("PENDING_ACCEPTANCE", "Pending acceptance"),
                            ("IN_PROGRESS", "In progress"),
                            ("PENDING_COMPLETION_REVIEW", "Pending completion review"),
                            ("COMPLETED", "Completed"),
                            ("CLOSED", "Closed"),
                            ("ARCHIVED", "Archived"),
                        ],
                        db_index=True,
                        default="OPEN",
                        max_length=32,
                    ),
                ),
                (
                    "priority",
                    models.CharField(
                        choices=[("LOW", "Low"), ("MEDIUM", "Medium"), ("HIGH", "High"), ("URGENT", "Urgent")],
                        db_index=True,
                        default="MEDIUM",
                        max_length=16,
                    ),
                ),
                ("due_date", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("closed_at", models.DateTimeField(blank=True, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("version", models.PositiveIntegerField(default=1)),
                (
                    "assigned_to",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="assigned_cases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "completed_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="approved_cases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "created_by",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="created_cases",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "watchers",
                    models.ManyToManyField(blank=True, related_name="watched_cases", to=settings.AUTH_USER_MODEL),
                ),
            ],
            options={
                "db_table": "cases_case",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["assigned_to", "status"], name="case_assignee_status_idx"),
                    models.Index(fields=["status", "priority", "created_at"], name="case_status_prio_idx"),
                    models.Index(fields=["created_by", "created_at"], name="case_creator_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(
                                ("assigned_to__isnull", False),
                                ("status__in", ["IN_PROGRESS", "PENDING_ACCEPTANCE", "PENDING_COMPLETION_REVIEW"]),
                            ),
                            models.Q(
                                ("assigned_to__isnull", True),
                                models.Q(
                                    ("status__in", ["IN_PROGRESS", "PENDING_ACCEPTANCE", "PENDING_COMPLETION_REVIEW"]),
                                    _negated=True,
                                ),
                            ),
                            _connector="OR",
                        ),
                        name="ck_case_assignee_matches_status",
                    ),
                ],
            },
        ),
    ]
