"""Onboarding checklist tracking and go-live."""
from __future__ import annotations

import logging

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, IntegrityError, transaction
from django.utils import timezone

from core.events import ONBOARDING_CREATED, ONBOARDING_LIVE, ONBOARDING_UPDATED, emit_event
from core.exceptions import IncompleteChecklist, InvalidChecklistUpdate
from onboarding.models import Onboarding
from payouts.ledger import PayoutLedger
from payouts.models import PayoutLedgerEntry

logger = logging.getLogger(__name__)


class OnboardingTracker:
    """Owns the onboarding checklist of won merchants and their go-live.

    Parameters
    ----------
    using : str
        Database alias every query and transaction runs against.
    ledger : PayoutLedger, optional
        Ledger used for the LIVE bonus; built on the same alias by default.
    live_bonus : Decimal, optional
        Overrides ``settings.LIVE_BONUS_AMOUNT``.
    """

    def __init__(self, using: str = DEFAULT_DB_ALIAS, ledger: PayoutLedger | None = None, live_bonus=None):
        self.using = using
        self.ledger = ledger or PayoutLedger(using=using)
        self._live_bonus = live_bonus

    @property
    def live_bonus(self):
        return self._live_bonus if self._live_bonus is not None else settings.LIVE_BONUS_AMOUNT

    def _onboardings(self):
        return Onboarding.objects.using(self.using)

    def start(self, merchant, actor=None) -> tuple[Onboarding, bool]:
        """Create the onboarding of ``merchant`` unless it already exists."""
        with transaction.atomic(using=self.using):
            try:
                with transaction.atomic(using=self.using):
                    onboarding = self._onboardings().create(
                        merchant=merchant,
                        status=Onboarding.Status.IN_PROGRESS,
                        last_updated_by=actor,
                    )
            except IntegrityError:
                return self._onboardings().get(merchant=merchant), False

            emit_event(
                action=ONBOARDING_CREATED,
                entity_type="Onboarding",
                entity_id=onboarding.pk,
                actor=actor,
                changes={"merchantId": str(merchant.pk), "status": onboarding.status},
                using=self.using,
            )
        logger.info("Onboarding started for merchant=%s", merchant.pk)
        return onboarding, True

    def update_checklist(self, onboarding: Onboarding, fields: dict, actor=None) -> Onboarding:
        """Set checklist items and notes, then recompute completion.

        Parameters
        ----------
        onboarding : Onboarding
        fields : dict
            Checklist item names mapped to booleans, optionally with
            ``qa_notes`` and ``internal_notes``.
        actor : accounts.models.User, optional

        Returns
        -------
        Onboarding

        Raises
        ------
        InvalidChecklistUpdate
            On unknown keys, non-boolean checklist values, or when an item
            would be unchecked on a LIVE onboarding.
        """
        allowed = set(Onboarding.CHECKLIST_FIELDS) | set(Onboarding.NOTE_FIELDS)
        unknown = sorted(set(fields) - allowed)
        if unknown:
            raise InvalidChecklistUpdate(f"Unknown checklist fields: {', '.join(unknown)}.")
        for name in Onboarding.CHECKLIST_FIELDS:
            if name in fields and not isinstance(fields[name], bool):
                raise InvalidChecklistUpdate(f"Checklist item {name} must be true or false.")

        with transaction.atomic(using=self.using):
            onboarding = self._onboardings().select_for_update().get(pk=onboarding.pk)
            if onboarding.is_live and any(
                fields.get(name) is False for name in Onboarding.CHECKLIST_FIELDS
            ):
                raise InvalidChecklistUpdate("A live onboarding cannot have checklist items unchecked.")

            before = {name: getattr(onboarding, name) for name in fields}
            before["completion_percentage"] = str(onboarding.completion_percentage)
            for name, value in fields.items():
                setattr(onboarding, name, value)
            onboarding.completion_percentage = onboarding.compute_completion()
            onboarding.last_updated_by = actor
            onboarding.save()

            after = {name: getattr(onboarding, name) for name in fields}
            after["completion_percentage"] = str(onboarding.completion_percentage)
            emit_event(
                action=ONBOARDING_UPDATED,
                entity_type="Onboarding",
                entity_id=onboarding.pk,
                actor=actor,
                changes={"before": before, "after": after},
                using=self.using,
            )
        return onboarding

    def mark_live(self, onboarding: Onboarding, actor=None) -> tuple[Onboarding, PayoutLedgerEntry | None]:
        """Move a completed onboarding to LIVE and record the LIVE bonus.

        Calling it again on a LIVE onboarding changes nothing and returns
        ``None`` as the payout.

        Raises
        ------
        IncompleteChecklist
            If any checklist item is still false.
        """
        with transaction.atomic(using=self.using):
            onboarding = (
                self._onboardings()
                .select_for_update()
                .select_related("merchant__assigned_rep")
                .get(pk=onboarding.pk)
            )
            if onboarding.is_live:
                logger.info("Onboarding %s is already live since %s", onboarding.pk, onboarding.live_date)
                return onboarding, None
            if not onboarding.is_complete:
                missing = [name for name, done in onboarding.checklist().items() if not done]
                raise IncompleteChecklist(
                    f"Checklist incomplete: {', '.join(missing)}.",
                    missing=missing,
                )

            onboarding.status = Onboarding.Status.LIVE
            onboarding.live_date = timezone.now()
            onboarding.completion_percentage = onboarding.compute_completion()
            onboarding.last_updated_by = actor
            onboarding.save()

            merchant = onboarding.merchant
            payout, _created = self.ledger.record(
                merchant=merchant,
                recipient=merchant.assigned_rep,
                reason=PayoutLedgerEntry.Reason.LIVE,
                amount=self.live_bonus,
                description=f"Live bonus for {merchant.name}",
                status=PayoutLedgerEntry.Status.PAID,
                actor=actor,
            )
            emit_event(
                action=ONBOARDING_LIVE,
                entity_type="Onboarding",
                entity_id=onboarding.pk,
                actor=actor,
                changes={
                    "merchantId": str(merchant.pk),
                    "liveDate": onboarding.live_date.isoformat(),
                    "payoutId": str(payout.pk),
                },
                using=self.using,
            )
        logger.info("Merchant %s is live", merchant.pk)
        return onboarding, payout

    @staticmethod
    def is_ready_for_qa(onboarding: Onboarding) -> bool:
        """Everything but QA approval is done."""
        checklist = onboarding.checklist()
        checklist.pop("qa_approved")
        return not onboarding.is_live and not onboarding.qa_approved and all(checklist.values())
