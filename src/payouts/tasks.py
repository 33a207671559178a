"""Celery tasks for the payout ledger."""
from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings
from django.db import OperationalError

from core.exceptions import StoreConflict

logger = logging.getLogger(__name__)


def reconcile_payouts() -> dict[str, int]:
    """Record the WON and LIVE bonuses missing for won or live merchants.

    A merchant counts as paid once any entry of that reason exists, whoever
    the recipient is, so a reassigned merchant is never paid twice. Returns
    how many entries of each reason were created.
    """
    from onboarding.models import Onboarding
    from payouts.ledger import PayoutLedger
    from payouts.models import PayoutLedgerEntry
    from pipeline.models import Pipeline

    ledger = PayoutLedger()
    created = {PayoutLedgerEntry.Reason.WON: 0, PayoutLedgerEntry.Reason.LIVE: 0}

    won_pipelines = (
        Pipeline.objects
        .filter(current_stage=Pipeline.Stage.WON, merchant__is_archived=False)
        .exclude(merchant__payouts__reason=PayoutLedgerEntry.Reason.WON)
        .select_related("merchant__assigned_rep")
    )
    for pipeline in won_pipelines.iterator():
        merchant = pipeline.merchant
        _entry, was_created = ledger.record(
            merchant=merchant,
            recipient=merchant.assigned_rep,
            reason=PayoutLedgerEntry.Reason.WON,
            amount=settings.WON_BONUS_AMOUNT,
            description=f"Won bonus for {merchant.name}",
        )
        created[PayoutLedgerEntry.Reason.WON] += int(was_created)

    live_onboardings = (
        Onboarding.objects
        .filter(status=Onboarding.Status.LIVE, merchant__is_archived=False)
        .exclude(merchant__payouts__reason=PayoutLedgerEntry.Reason.LIVE)
        .select_related("merchant__assigned_rep")
    )
    for onboarding in live_onboardings.iterator():
        merchant = onboarding.merchant
        _entry, was_created = ledger.record(
            merchant=merchant,
            recipient=merchant.assigned_rep,
            reason=PayoutLedgerEntry.Reason.LIVE,
            amount=settings.LIVE_BONUS_AMOUNT,
            description=f"Live bonus for {merchant.name}",
        )
        created[PayoutLedgerEntry.Reason.LIVE] += int(was_created)

    return {str(reason): count for reason, count in created.items()}


@shared_task(
    bind=True,
    autoretry_for=(StoreConflict,),
    retry_backoff=True,
    retry_backoff_max=60,
    retry_jitter=True,
    max_retries=5,
)
def reconcile_missing_payouts(self):
    """Repair WON/LIVE ledger entries missing for won or live merchants."""
    try:
        created = reconcile_payouts()
    except OperationalError as exc:
        raise StoreConflict(str(exc)) from exc
    if any(created.values()):
        logger.warning("Payout reconciliation created missing entries: %s", created)
    else:
        logger.info("Payout reconciliation found nothing to repair")
    return created
