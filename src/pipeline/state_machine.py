"""Merchant sales pipeline state machine.

Any stage may be entered from any stage, including the current one; every
call appends one history row. Reaching WON starts onboarding and, when
the onboarding is new, records the WON bonus for the assigned
representative, in the same transaction as the stage change. Setting
``PIPELINE_STRICT_TRANSITIONS`` restricts moves to ``ALLOWED_TRANSITIONS``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.db import DEFAULT_DB_ALIAS, transaction
from django.utils import timezone

from core.events import PIPELINE_NEXT_ACTION_UPDATED, PIPELINE_STAGE_CHANGED, emit_event
from core.exceptions import InvalidTransition, MissingReason
from onboarding.models import Onboarding
from onboarding.tracker import OnboardingTracker
from payouts.ledger import PayoutLedger
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline, PipelineStageHistory

logger = logging.getLogger(__name__)

Stage = Pipeline.Stage

DEFAULT_NEXT_ACTIONS = {
    Stage.PENDING_FIRST_VISIT: "Schedule and conduct first visit with merchant",
    Stage.CONTACTED: "Book a meeting with the merchant",
    Stage.MEETING_SCHEDULED: "Hold the meeting and present the offer",
    Stage.FOLLOW_UP_NEEDED: "Follow up on merchant interest and address concerns",
    Stage.CONTRACT_SENT: "Follow up on contract status and get signature",
    Stage.WON: "Begin onboarding process and complete requirements",
    Stage.LOST: "",
}

# Only enforced when PIPELINE_STRICT_TRANSITIONS is on.
ALLOWED_TRANSITIONS = {
    Stage.PENDING_FIRST_VISIT: {
        Stage.CONTACTED,
        Stage.MEETING_SCHEDULED,
        Stage.FOLLOW_UP_NEEDED,
        Stage.LOST,
    },
    Stage.CONTACTED: {
        Stage.MEETING_SCHEDULED,
        Stage.FOLLOW_UP_NEEDED,
        Stage.CONTRACT_SENT,
        Stage.LOST,
    },
    Stage.MEETING_SCHEDULED: {
        Stage.FOLLOW_UP_NEEDED,
        Stage.CONTRACT_SENT,
        Stage.LOST,
    },
    Stage.FOLLOW_UP_NEEDED: {
        Stage.CONTACTED,
        Stage.MEETING_SCHEDULED,
        Stage.CONTRACT_SENT,
        Stage.LOST,
    },
    Stage.CONTRACT_SENT: {
        Stage.FOLLOW_UP_NEEDED,
        Stage.WON,
        Stage.LOST,
    },
    Stage.WON: {Stage.LOST},
    Stage.LOST: set(),
}


@dataclass
class TransitionResult:
    """Everything a single transition produced."""

    pipeline: Pipeline
    history: PipelineStageHistory
    onboarding: Onboarding | None = None
    payout: PayoutLedgerEntry | None = None
    onboarding_created: bool = False
    payout_created: bool = False


def default_next_action_date(stage: str, now: datetime | None = None) -> datetime | None:
    if stage == Stage.LOST:
        return None
    now = now or timezone.now()
    return now + timedelta(days=settings.PIPELINE_NEXT_ACTION_DAYS)


class PipelineStateMachine:
    """Moves merchant pipelines between stages and applies the WON side effects.

    Parameters
    ----------
    using : str
        Database alias every query and transaction runs against.
    tracker : OnboardingTracker, optional
    ledger : PayoutLedger, optional
    won_bonus : Decimal, optional
        Overrides ``settings.WON_BONUS_AMOUNT``.
    strict : bool, optional
        Overrides ``settings.PIPELINE_STRICT_TRANSITIONS``.
    """

    def __init__(
        self,
        using: str = DEFAULT_DB_ALIAS,
        tracker: OnboardingTracker | None = None,
        ledger: PayoutLedger | None = None,
        won_bonus=None,
        strict: bool | None = None,
    ):
        self.using = using
        self.ledger = ledger or PayoutLedger(using=using)
        self.tracker = tracker or OnboardingTracker(using=using, ledger=self.ledger)
        self._won_bonus = won_bonus
        self._strict = strict

    @property
    def won_bonus(self):
        return self._won_bonus if self._won_bonus is not None else settings.WON_BONUS_AMOUNT

    @property
    def strict(self) -> bool:
        return self._strict if self._strict is not None else settings.PIPELINE_STRICT_TRANSITIONS

    def possible_stages(self, pipeline: Pipeline) -> list[str]:
        if self.strict:
            allowed = ALLOWED_TRANSITIONS.get(pipeline.current_stage, set())
        else:
            allowed = set(Stage.values) - {pipeline.current_stage}
        return sorted(allowed, key=lambda stage: Pipeline.STAGE_ORDER[stage])

    def _validate(self, pipeline: Pipeline, new_stage, lost_reason: str) -> None:
        if new_stage not in Stage.values:
            raise InvalidTransition(f"Unknown pipeline stage: {new_stage!r}.", stage=new_stage)
        if new_stage == Stage.LOST and not (lost_reason or "").strip():
            raise MissingReason("A reason is required to mark a merchant as lost.")
        if self.strict and new_stage not in ALLOWED_TRANSITIONS.get(pipeline.current_stage, set()):
            raise InvalidTransition(
                f"Transition from {pipeline.current_stage} to {new_stage} is not allowed.",
                stage=new_stage,
            )

    def transition(
        self,
        pipeline: Pipeline,
        new_stage: str,
        actor,
        notes: str = "",
        lost_reason: str = "",
        next_action_description: str | None = None,
        next_action_date: datetime | None = None,
    ) -> TransitionResult:
        """Move ``pipeline`` to ``new_stage``.

        Parameters
        ----------
        pipeline : Pipeline
        new_stage : str
            A :class:`Pipeline.Stage` value.
        actor : accounts.models.User
        notes : str
            Stored on the history row.
        lost_reason : str
            Required when ``new_stage`` is LOST.
        next_action_description, next_action_date : optional
            Override the stage defaults.

        Returns
        -------
        TransitionResult

        Raises
        ------
        InvalidTransition
            If ``new_stage`` is unknown (or not allowed in strict mode).
        MissingReason
            If ``new_stage`` is LOST and no reason was given.
        """
        # Cheap argument checks before taking any lock.
        if new_stage not in Stage.values:
            raise InvalidTransition(f"Unknown pipeline stage: {new_stage!r}.", stage=new_stage)

        with transaction.atomic(using=self.using):
            pipeline = (
                Pipeline.objects.using(self.using)
                .select_for_update()
                .select_related("merchant__assigned_rep")
                .get(pk=pipeline.pk)
            )
            self._validate(pipeline, new_stage, lost_reason)

            old_stage = pipeline.current_stage
            pipeline.current_stage = new_stage
            pipeline.lost_reason = lost_reason.strip() if new_stage == Stage.LOST else ""
            pipeline.next_action_description = (
                next_action_description
                if next_action_description is not None
                else DEFAULT_NEXT_ACTIONS[new_stage]
            )
            pipeline.next_action_date = (
                next_action_date
                if next_action_date is not None
                else default_next_action_date(new_stage)
            )
            pipeline.last_updated_by = actor
            pipeline.save()

            history = PipelineStageHistory.objects.using(self.using).create(
                pipeline=pipeline,
                from_stage=old_stage,
                to_stage=new_stage,
                actor=actor,
                notes=notes,
            )
            emit_event(
                action=PIPELINE_STAGE_CHANGED,
                entity_type="Pipeline",
                entity_id=pipeline.pk,
                actor=actor,
                changes={
                    "merchantId": str(pipeline.merchant_id),
                    "before": {"stage": old_stage},
                    "after": {"stage": new_stage, "lostReason": pipeline.lost_reason},
                },
                using=self.using,
            )
            result = TransitionResult(pipeline=pipeline, history=history)

            if new_stage == Stage.WON:
                self._apply_won(result, actor)

        logger.info(
            "Pipeline %s moved %s -> %s by %s",
            pipeline.pk,
            old_stage,
            new_stage,
            getattr(actor, "pk", None),
        )
        return result

    def _apply_won(self, result: TransitionResult, actor) -> None:
        merchant = result.pipeline.merchant
        result.onboarding, result.onboarding_created = self.tracker.start(merchant, actor=actor)
        if not result.onboarding_created:
            # The WON bonus was recorded with the onboarding; the merchant
            # may have been reassigned since.
            result.payout = (
                PayoutLedgerEntry.objects.using(self.using)
                .filter(merchant=merchant, reason=PayoutLedgerEntry.Reason.WON)
                .order_by("created_at")
                .first()
            )
            return
        result.payout, result.payout_created = self.ledger.record(
            merchant=merchant,
            recipient=merchant.assigned_rep,
            reason=PayoutLedgerEntry.Reason.WON,
            amount=self.won_bonus,
            description=f"Won bonus for {merchant.name}",
            status=PayoutLedgerEntry.Status.PAID,
            actor=actor,
        )

    def update_next_action(self, pipeline: Pipeline, actor, description: str, due: datetime | None) -> Pipeline:
        """Replace the next action without changing the stage."""
        with transaction.atomic(using=self.using):
            pipeline = Pipeline.objects.using(self.using).select_for_update().get(pk=pipeline.pk)
            before = {
                "description": pipeline.next_action_description,
                "date": pipeline.next_action_date.isoformat() if pipeline.next_action_date else None,
            }
            pipeline.next_action_description = description
            pipeline.next_action_date = due
            pipeline.last_updated_by = actor
            pipeline.save(update_fields=["next_action_description", "next_action_date", "last_updated_by", "updated_at"])
            emit_event(
                action=PIPELINE_NEXT_ACTION_UPDATED,
                entity_type="Pipeline",
                entity_id=pipeline.pk,
                actor=actor,
                changes={
                    "before": before,
                    "after": {"description": description, "date": due.isoformat() if due else None},
                },
                using=self.using,
            )
        return pipeline
