import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

STAGE_CHOICES = [
    ("PENDING_FIRST_VISIT", "Pending first visit"),
    ("CONTACTED", "Contacted"),
    ("MEETING_SCHEDULED", "Meeting scheduled"),
    ("FOLLOW_UP_NEEDED", "Follow-up needed"),
    ("CONTRACT_SENT", "Contract sent"),
    ("WON", "Won"),
    ("LOST", "Lost"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("merchants", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Pipeline",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "current_stage",
                    models.CharField(choices=STAGE_CHOICES, db_index=True, default="PENDING_FIRST_VISIT", max_length=30),
                ),
                ("next_action_description", models.CharField(blank=True, default="", max_length=255)),
                ("next_action_date", models.DateTimeField(blank=True, db_index=True, null=True)),
                ("lost_reason", models.CharField(blank=True, default="", max_length=255)),
                (
                    "last_updated_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pipelines_updated",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "merchant",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="pipeline",
                        to="merchants.merchant",
                    ),
                ),
            ],
            options={
                "verbose_name": "pipeline",
                "verbose_name_plural": "pipelines",
                "ordering": ["-updated_at"],
            },
        ),
        migrations.CreateModel(
            name="PipelineStageHistory",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("from_stage", models.CharField(blank=True, choices=STAGE_CHOICES, default="", max_length=30)),
                ("to_stage", models.CharField(choices=STAGE_CHOICES, max_length=30)),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="pipeline_stage_changes",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "pipeline",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stage_history",
                        to="pipeline.pipeline",
                    ),
                ),
            ],
            options={
                "verbose_name": "pipeline stage history",
                "verbose_name_plural": "pipeline stage history",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["pipeline", "created_at"], name="stage_history_pipeline_idx"),
                ],
            },
        ),
    ]
