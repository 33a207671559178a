"""Idempotent payout ledger.

A ledger entry is keyed by (merchant, reason, recipient). The database
unique constraint ``uniq_payout_merchant_reason_recipient`` is the only
guard against duplicates: :meth:`PayoutLedger.record` always attempts the
insert inside a savepoint and, when the constraint fires, returns the row
that won the race instead of raising.
"""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.db.models import Sum
from django.utils import timezone

from core.events import PAYOUT_RECORDED, PAYOUT_STATUS_CHANGED, emit_event
from core.exceptions import DuplicateLedgerEntry, InvalidPayout
from payouts.models import PayoutLedgerEntry

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

ALLOWED_STATUS_TRANSITIONS = {
    PayoutLedgerEntry.Status.PENDING: {
        PayoutLedgerEntry.Status.PAID,
        PayoutLedgerEntry.Status.CANCELLED,
    },
    PayoutLedgerEntry.Status.PAID: set(),
    PayoutLedgerEntry.Status.CANCELLED: set(),
}


def to_amount(value) -> Decimal:
    """Convert ``value`` to a non-negative Decimal rounded to cents."""
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise InvalidPayout(f"Invalid payout amount: {value!r}.") from exc
    if not amount.is_finite() or amount < 0:
        raise InvalidPayout(f"Payout amount must be a non-negative number, got {value!r}.")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


class PayoutLedger:
    """Records representative bonuses exactly once per (merchant, reason, recipient)."""

    def __init__(self, using: str = DEFAULT_DB_ALIAS):
        self.using = using

    def _entries(self):
        return PayoutLedgerEntry.objects.using(self.using)

    def _insert(self, **values) -> PayoutLedgerEntry:
        try:
            with transaction.atomic(using=self.using):
                return self._entries().create(**values)
        except IntegrityError as exc:
            if self._entries().filter(
                merchant=values["merchant"],
                reason=values["reason"],
                recipient=values["recipient"],
            ).exists():
                raise DuplicateLedgerEntry(
                    merchant_id=values["merchant"].pk,
                    reason=values["reason"],
                    recipient_id=values["recipient"].pk,
                ) from exc
            raise

    def record(
        self,
        merchant,
        recipient,
        reason: str,
        amount,
        description: str = "",
        status: str = PayoutLedgerEntry.Status.PAID,
        actor=None,
    ) -> tuple[PayoutLedgerEntry, bool]:
        """Record a payout unless one already exists for the same triple.

        Parameters
        ----------
        merchant : merchants.models.Merchant
        recipient : accounts.models.User
        reason : str
            One of :class:`PayoutLedgerEntry.Reason`.
        amount : Decimal | str | int
            Converted to a Decimal with two places; never a float in storage.
        description : str
        status : str
            Initial status, ``PAID`` by default.
        actor : accounts.models.User, optional
            User on whose behalf the entry is written.

        Returns
        -------
        tuple[PayoutLedgerEntry, bool]
            The entry and whether it was created by this call.

        Raises
        ------
        InvalidPayout
            If the amount, reason or status is invalid.
        """
        if reason not in PayoutLedgerEntry.Reason.values:
            raise InvalidPayout(f"Unknown payout reason: {reason!r}.")
        if status not in PayoutLedgerEntry.Status.values:
            raise InvalidPayout(f"Unknown payout status: {status!r}.")
        amount = to_amount(amount)

        with transaction.atomic(using=self.using):
            try:
                entry = self._insert(
                    merchant=merchant,
                    recipient=recipient,
                    reason=reason,
                    amount=amount,
                    currency=settings.DEFAULT_CURRENCY,
                    status=status,
                    description=description[:255],
                    paid_at=timezone.now() if status == PayoutLedgerEntry.Status.PAID else None,
                    created_by=actor,
                )
            except DuplicateLedgerEntry:
                entry = self._entries().get(merchant=merchant, reason=reason, recipient=recipient)
                logger.debug(
                    "Payout %s for merchant=%s recipient=%s already recorded as %s",
                    reason,
                    merchant.pk,
                    recipient.pk,
                    entry.pk,
                )
                return entry, False

            emit_event(
                action=PAYOUT_RECORDED,
                entity_type="PayoutLedgerEntry",
                entity_id=entry.pk,
                actor=actor,
                changes={
                    "merchantId": str(merchant.pk),
                    "recipientId": str(recipient.pk),
                    "reason": reason,
                    "amount": str(amount),
                    "currency": entry.currency,
                    "status": status,
                },
                using=self.using,
            )
        logger.info(
            "Payout %s of %s %s recorded for merchant=%s recipient=%s",
            reason,
            amount,
            entry.currency,
            merchant.pk,
            recipient.pk,
        )
        return entry, True

    def _change_status(self, entry: PayoutLedgerEntry, new_status: str, actor) -> PayoutLedgerEntry:
        with transaction.atomic(using=self.using):
            entry = self._entries().select_for_update().get(pk=entry.pk)
            old_status = entry.status
            if new_status not in ALLOWED_STATUS_TRANSITIONS.get(old_status, set()):
                raise InvalidPayout(f"Cannot move payout from {old_status} to {new_status}.")
            entry.status = new_status
            update_fields = ["status", "updated_at"]
            if new_status == PayoutLedgerEntry.Status.PAID:
                entry.paid_at = timezone.now()
                update_fields.append("paid_at")
            entry.save(update_fields=update_fields)
            emit_event(
                action=PAYOUT_STATUS_CHANGED,
                entity_type="PayoutLedgerEntry",
                entity_id=entry.pk,
                actor=actor,
                changes={"before": {"status": old_status}, "after": {"status": new_status}},
                using=self.using,
            )
        return entry

    def mark_paid(self, entry: PayoutLedgerEntry, actor=None) -> PayoutLedgerEntry:
        """Move a PENDING entry to PAID."""
        return self._change_status(entry, PayoutLedgerEntry.Status.PAID, actor)

    def cancel(self, entry: PayoutLedgerEntry, actor=None) -> PayoutLedgerEntry:
        """Move a PENDING entry to CANCELLED."""
        return self._change_status(entry, PayoutLedgerEntry.Status.CANCELLED, actor)

    def totals_for(self, recipient, start=None, end=None) -> dict[str, Decimal]:
        """Sum of amounts per status for one recipient.

        ``start`` and ``end`` bound ``created_at`` as a half-open range.
        """
        totals = {status: Decimal("0.00") for status in PayoutLedgerEntry.Status.values}
        entries = self._entries().filter(recipient=recipient)
        if start is not None:
            entries = entries.filter(created_at__gte=start)
        if end is not None:
            entries = entries.filter(created_at__lt=end)
        rows = (
            entries
            .order_by()
            .values("status")
            .annotate(total=Sum("amount"))
        )
        for row in rows:
            totals[row["status"]] = row["total"] or Decimal("0.00")
        return totals
