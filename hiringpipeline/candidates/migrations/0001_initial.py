import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


STATUS_CHOICES = [
    ("applied", "Applied"),
    ("reference_check", "Reference Check"),
    ("offer", "Offer"),
    ("hired", "Hired"),
    ("rejected", "Rejected"),
    ("withdrawn", "Withdrawn"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Candidate",
            fields=[
                ("candidate_id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=200)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("current_status", models.CharField(choices=STATUS_CHOICES, default="applied", max_length=30)),
                ("date_created", models.DateTimeField(default=django.utils.timezone.now)),
                ("is_deleted", models.BooleanField(default=False)),
            ],
            options={
                "indexes": [models.Index(fields=["current_status", "is_deleted"], name="candidates__current_2f1d0e_idx")],
            },
        ),
        migrations.CreateModel(
            name="StatusHistory",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("history_id", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("old_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=30, null=True)),
                ("new_status", models.CharField(choices=STATUS_CHOICES, max_length=30)),
                ("changed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("changed_by", models.CharField(max_length=150)),
                ("changed_by_name", models.CharField(blank=True, max_length=200)),
                ("changed_by_email", models.EmailField(blank=True, max_length=254)),
                ("reason", models.TextField(blank=True)),
                ("notes", models.TextField(blank=True)),
                (
                    "source",
                    models.CharField(
                        choices=[
                            ("manual", "Manual"),
                            ("automation", "Automation"),
                            ("bulk_action", "Bulk action"),
                            ("api", "API"),
                            ("migration", "Migration"),
                        ],
                        default="manual",
                        max_length=20,
                    ),
                ),
                (
                    "candidate",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_history",
                        to="candidates.candidate",
                    ),
                ),
            ],
            options={
                "verbose_name_plural": "status history",
                "ordering": ("changed_at", "id"),
                "indexes": [models.Index(fields=["candidate", "changed_at"], name="candidates__candida_8b3c41_idx")],
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("verb", models.CharField(max_length=100)),
                ("target_type", models.CharField(max_length=100)),
                ("target_id", models.CharField(max_length=100)),
                ("timestamp", models.DateTimeField(auto_now_add=True)),
                ("data", models.JSONField(default=dict)),
                (
                    "actor",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "indexes": [models.Index(fields=["target_type", "target_id"], name="candidates__target__5a7e92_idx")],
            },
        ),
    ]
