"""Models for the merchant sales pipeline."""
from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class Pipeline(TimeStampedModel):
    """Current sales stage of a merchant. Exactly one per merchant."""

    class Stage(models.TextChoices):
        PENDING_FIRST_VISIT = "PENDING_FIRST_VISIT", "Pending first visit"
        CONTACTED = "CONTACTED", "Contacted"
        MEETING_SCHEDULED = "MEETING_SCHEDULED", "Meeting scheduled"
        FOLLOW_UP_NEEDED = "FOLLOW_UP_NEEDED", "Follow-up needed"
        CONTRACT_SENT = "CONTRACT_SENT", "Contract sent"
        WON = "WON", "Won"
        LOST = "LOST", "Lost"

    STAGE_ORDER = {
        Stage.PENDING_FIRST_VISIT: 1,
        Stage.CONTACTED: 2,
        Stage.MEETING_SCHEDULED: 3,
        Stage.FOLLOW_UP_NEEDED: 4,
        Stage.CONTRACT_SENT: 5,
        Stage.WON: 6,
        Stage.LOST: 7,
    }
    TERMINAL_STAGES = frozenset({Stage.WON, Stage.LOST})

    merchant = models.OneToOneField(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        related_name="pipeline",
    )
    current_stage = models.CharField(
        max_length=30,
        choices=Stage.choices,
        default=Stage.PENDING_FIRST_VISIT,
        db_index=True,
    )
    next_action_description = models.CharField(max_length=255, blank=True, default="")
    next_action_date = models.DateTimeField(null=True, blank=True, db_index=True)
    lost_reason = models.CharField(max_length=255, blank=True, default="")
    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pipelines_updated",
    )

    class Meta:
        ordering = ["-updated_at"]
        verbose_name = "pipeline"
        verbose_name_plural = "pipelines"

    def __str__(self):
        return f"{self.merchant} [{self.current_stage}]"

    @property
    def is_terminal(self) -> bool:
        return self.current_stage in self.TERMINAL_STAGES

    @property
    def is_overdue(self) -> bool:
        return bool(
            self.next_action_date
            and not self.is_terminal
            and self.next_action_date < timezone.now()
        )


class PipelineStageHistory(TimeStampedModel):
    """Append-only log with one row per stage transition event."""

    pipeline = models.ForeignKey(
        Pipeline,
        on_delete=models.CASCADE,
        related_name="stage_history",
    )
    from_stage = models.CharField(max_length=30, choices=Pipeline.Stage.choices, blank=True, default="")
    to_stage = models.CharField(max_length=30, choices=Pipeline.Stage.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="pipeline_stage_changes",
    )
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "pipeline stage history"
        verbose_name_plural = "pipeline stage history"
        indexes = [
            models.Index(fields=["pipeline", "created_at"], name="stage_history_pipeline_idx"),
        ]

    def __str__(self):
        return f"{self.from_stage or '-'} -> {self.to_stage}"
