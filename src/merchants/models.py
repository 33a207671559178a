"""Models for merchants and the sales activities logged against them."""
from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone

from core.models import TimeStampedModel


class MerchantQuerySet(models.QuerySet):
    def active(self):
        return self.filter(is_archived=False)

    def assigned_to(self, user):
        return self.filter(assigned_rep=user)


class Merchant(TimeStampedModel):
    """A business being sold to. Never deleted, only archived."""

    class Category(models.TextChoices):
        FOOD = "FOOD", "Food"
        BEAUTY = "BEAUTY", "Beauty"
        SPORTS = "SPORTS", "Sports"
        DESSERTS_COFFEE = "DESSERTS_COFFEE", "Desserts & coffee"
        ELECTRONICS = "ELECTRONICS", "Electronics"
        FASHION = "FASHION", "Fashion"
        SERVICES = "SERVICES", "Services"
        RETAIL = "RETAIL", "Retail"
        OTHER = "OTHER", "Other"

    name = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=Category.choices, db_index=True)
    contact_person_name = models.CharField(max_length=150, blank=True, default="")
    contact_phone = models.CharField(max_length=30, blank=True, default="")
    contact_email = models.EmailField(blank=True, default="")
    location = models.CharField(max_length=255, blank=True, default="")
    description = models.TextField(blank=True, default="")
    assigned_rep = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="assigned_merchants",
    )
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="merchants_created",
    )
    is_archived = models.BooleanField(default=False, db_index=True)
    archived_at = models.DateTimeField(null=True, blank=True)

    objects = MerchantQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "merchant"
        verbose_name_plural = "merchants"
        constraints = [
            models.UniqueConstraint(
                fields=["name", "contact_phone"],
                name="uniq_merchant_name_phone",
            ),
        ]
        indexes = [
            models.Index(fields=["assigned_rep", "is_archived"], name="merchant_rep_archived_idx"),
            models.Index(fields=["category", "is_archived"], name="merchant_cat_archived_idx"),
        ]

    def __str__(self):
        return self.name


class Activity(TimeStampedModel):
    """Append-only log of a call, meeting or message with a merchant."""

    class Type(models.TextChoices):
        CALL = "CALL", "Call"
        MEETING = "MEETING", "Meeting"
        WHATSAPP = "WHATSAPP", "WhatsApp"
        EMAIL = "EMAIL", "Email"
        TRAINING = "TRAINING", "Training"
        OTHER = "OTHER", "Other"

    class Outcome(models.TextChoices):
        POSITIVE = "POSITIVE", "Positive"
        NEUTRAL = "NEUTRAL", "Neutral"
        NEGATIVE = "NEGATIVE", "Negative"
        FOLLOW_UP_NEEDED = "FOLLOW_UP_NEEDED", "Follow-up needed"

    MIN_DURATION_MINUTES = 1
    MAX_DURATION_MINUTES = 480

    merchant = models.ForeignKey(
        Merchant,
        on_delete=models.PROTECT,
        related_name="activities",
    )
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="activities_logged",
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    outcome = models.CharField(max_length=20, choices=Outcome.choices, default=Outcome.NEUTRAL)
    summary = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    duration_minutes = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[
            MinValueValidator(MIN_DURATION_MINUTES),
            MaxValueValidator(MAX_DURATION_MINUTES),
        ],
    )
    scheduled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "activity"
        verbose_name_plural = "activities"
        indexes = [
            models.Index(fields=["merchant", "created_at"], name="activity_merchant_created_idx"),
            models.Index(fields=["actor", "created_at"], name="activity_actor_created_idx"),
        ]

    def clean(self):
        if self.duration_minutes is not None and not (
            self.MIN_DURATION_MINUTES <= self.duration_minutes <= self.MAX_DURATION_MINUTES
        ):
            raise ValidationError(
                {"duration_minutes": f"Duration must be between {self.MIN_DURATION_MINUTES} and {self.MAX_DURATION_MINUTES} minutes."}
            )
        if self.completed_at and self.completed_at > timezone.now():
            raise ValidationError({"completed_at": "Completion time cannot be in the future."})

    def __str__(self):
        return f"{self.get_type_display()}: {self.summary}"
