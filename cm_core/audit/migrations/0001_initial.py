import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("cases", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="CaseLog",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                (
                    "action",
                    models.CharField(
                        choices=[
                            ("CREATE", "创建案件"),
                            ("UPDATE", "更新案件"),
                            ("ASSIGN", "指派案件"),
                            ("ACCEPT", "接受案件"),
                            ("REJECT", "拒絕案件"),
                            ("REQUEST_COMPLETION", "請求完成"),
                            ("APPROVE", "批准完成"),
                            ("REJECT_COMPLETION", "拒絕完成"),
                            ("CLOSE", "關閉案件"),
                            ("ARCHIVE", "歸檔案件"),
                            ("NOTE", "手動備注"),
                        ],
                        db_index=True,
                        max_length=32,
                    ),
                ),
                ("description", models.TextField(blank=True, default="")),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="case_logs",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "case",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="logs",
                        to="cases.case",
                    ),
                ),
            ],
            options={
                "db_table": "audit_case_log",
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["case", "created_at", "id"], name="caselog_case_time_idx"),
                ],
            },
        ),
    ]
