"""Ledger of bonuses owed or paid to sales representatives."""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models

from core.models import TimeStampedModel


class PayoutLedgerEntry(TimeStampedModel):
    """A single bonus event. At most one per (merchant, reason, recipient)."""

    class Reason(models.TextChoices):
        WON = "WON", "Merchant won"
        LIVE = "LIVE", "Merchant live"
        ADJUSTMENT = "ADJUSTMENT", "Adjustment"

    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        PAID = "PAID", "Paid"
        CANCELLED = "CANCELLED", "Cancelled"

    merchant = models.ForeignKey(
        "merchants.Merchant",
        on_delete=models.PROTECT,
        related_name="payouts",
    )
    recipient = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payouts",
    )
    reason = models.CharField(max_length=20, choices=Reason.choices)
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0"))],
    )
    currency = models.CharField(max_length=3)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PENDING,
        db_index=True,
    )
    description = models.CharField(max_length=255, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="payouts_created",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "payout ledger entry"
        verbose_name_plural = "payout ledger entries"
        constraints = [
            models.UniqueConstraint(
                fields=["merchant", "reason", "recipient"],
                name="uniq_payout_merchant_reason_recipient",
            ),
        ]
        indexes = [
            models.Index(fields=["recipient", "status"], name="payout_recipient_status_idx"),
        ]

    def __str__(self):
        return f"{self.reason} {self.amount} {self.currency} -> {self.recipient}"
