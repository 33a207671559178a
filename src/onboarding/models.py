"""Post-sale onboarding checklist for won merchants."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class Onboarding(TimeStampedModel):
    """Onboarding progress of a merchant. Created once its pipeline is WON."""

    class Status(models.TextChoices):
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        LIVE = "LIVE", "Live"

    CHECKLIST_FIELDS = (
        "survey_filled",
        "offers_added",
        "branches_covered",
        "assets_complete",
        "qa_approved",
    )
    NOTE_FIELDS = ("qa_notes", "internal_notes")

    merchant = models.OneToOneField(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        related_name="onboarding",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.IN_PROGRESS,
        db_index=True,
    )
    survey_filled = models.BooleanField(default=False)
    offers_added = models.BooleanField(default=False)
    branches_covered = models.BooleanField(default=False)
    assets_complete = models.BooleanField(default=False)
    qa_approved = models.BooleanField(default=False)
    completion_percentage = models.DecimalField(
        max_digits=3,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("1"))],
    )
    live_date = models.DateTimeField(null=True, blank=True)
    qa_notes = models.TextField(blank=True, default="")
    internal_notes = models.TextField(blank=True, default="")
    last_updated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="onboardings_updated",
    )

    class Meta:
        ordering = ["-updated_at"]
        verbose_name = "onboarding"
        verbose_name_plural = "onboardings"

    def __str__(self):
        return f"Onboarding {self.merchant} [{self.status}]"

    def checklist(self) -> dict[str, bool]:
        return {name: getattr(self, name) for name in self.CHECKLIST_FIELDS}

    def compute_completion(self) -> Decimal:
        done = sum(1 for value in self.checklist().values() if value)
        ratio = Decimal(done) / Decimal(len(self.CHECKLIST_FIELDS))
        return ratio.quantize(Decimal("0.01"))

    @property
    def is_complete(self) -> bool:
        return all(self.checklist().values())

    @property
    def is_live(self) -> bool:
        return self.status == self.Status.LIVE
