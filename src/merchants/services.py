"""Business-logic / service functions for merchants and activities."""
from __future__ import annotations

import logging

from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from core.events import (
    ACTIVITY_LOGGED,
    MERCHANT_ARCHIVED,
    MERCHANT_CREATED,
    MERCHANT_REASSIGNED,
    MERCHANT_UPDATED,
    emit_event,
)
from merchants.models import Activity, Merchant
from pipeline.models import Pipeline, PipelineStageHistory
from pipeline.state_machine import DEFAULT_NEXT_ACTIONS, default_next_action_date

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "name",
    "category",
    "contact_person_name",
    "contact_phone",
    "contact_email",
    "location",
    "description",
)


def _check_owner(user) -> None:
    if user is None or not getattr(user, "can_own_merchants", False):
        raise ValidationError({"assigned_rep": "Merchants can only be assigned to active reps or admins."})


# ---------------------------------------------------------------------------
# create_merchant
# ---------------------------------------------------------------------------

@transaction.atomic
def create_merchant(*, name: str, category: str, assigned_rep, actor, **fields) -> Merchant:
    """Create a merchant together with its pipeline.

    The pipeline starts at PENDING_FIRST_VISIT with the default next action,
    and the initial stage is written to the history.

    Parameters
    ----------
    name : str
    category : str
        A :class:`Merchant.Category` value.
    assigned_rep : accounts.models.User
    actor : accounts.models.User
    **fields
        Any other profile field (contact, location, description).

    Returns
    -------
    Merchant

    Raises
    ------
    django.core.exceptions.ValidationError
        If a field is invalid or the merchant already exists.
    """
    unknown = sorted(set(fields) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown merchant fields: {', '.join(unknown)}.")
    _check_owner(assigned_rep)

    merchant = Merchant(
        name=name,
        category=category,
        assigned_rep=assigned_rep,
        created_by=actor,
        **fields,
    )
    merchant.full_clean()
    merchant.save()

    stage = Pipeline.Stage.PENDING_FIRST_VISIT
    pipeline = Pipeline.objects.create(
        merchant=merchant,
        current_stage=stage,
        next_action_description=DEFAULT_NEXT_ACTIONS[stage],
        next_action_date=default_next_action_date(stage),
        last_updated_by=actor,
    )
    PipelineStageHistory.objects.create(
        pipeline=pipeline,
        from_stage="",
        to_stage=stage,
        actor=actor,
        notes="Merchant created",
    )
    emit_event(
        action=MERCHANT_CREATED,
        entity_type="Merchant",
        entity_id=merchant.pk,
        actor=actor,
        changes={
            "name": merchant.name,
            "category": merchant.category,
            "assignedRepId": str(assigned_rep.pk),
        },
    )
    logger.info("Merchant %s (%s) created by %s", merchant.pk, merchant.name, getattr(actor, "pk", None))
    return merchant


# ---------------------------------------------------------------------------
# update_merchant / reassign_rep / archive_merchant
# ---------------------------------------------------------------------------

@transaction.atomic
def update_merchant(merchant: Merchant, changes: dict, actor) -> Merchant:
    """Update profile fields. Only :data:`PROFILE_FIELDS` may change."""
    unknown = sorted(set(changes) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be updated: {', '.join(unknown)}.")

    merchant = Merchant.objects.select_for_update().get(pk=merchant.pk)
    before = {name: getattr(merchant, name) for name in changes}
    for name, value in changes.items():
        setattr(merchant, name, value)
    merchant.full_clean()
    merchant.save()

    emit_event(
        action=MERCHANT_UPDATED,
        entity_type="Merchant",
        entity_id=merchant.pk,
        actor=actor,
        changes={"before": before, "after": {name: getattr(merchant, name) for name in changes}},
    )
    return merchant


@transaction.atomic
def reassign_rep(merchant: Merchant, new_rep, actor) -> Merchant:
    """Hand a merchant over to another representative.

    Bonuses already in the ledger stay with the previous representative.
    """
    _check_owner(new_rep)
    merchant = Merchant.objects.select_for_update().get(pk=merchant.pk)
    previous_rep_id = merchant.assigned_rep_id
    if previous_rep_id == new_rep.pk:
        return merchant

    merchant.assigned_rep = new_rep
    merchant.save(update_fields=["assigned_rep", "updated_at"])
    emit_event(
        action=MERCHANT_REASSIGNED,
        entity_type="Merchant",
        entity_id=merchant.pk,
        actor=actor,
        changes={
            "before": {"assignedRepId": str(previous_rep_id)},
            "after": {"assignedRepId": str(new_rep.pk)},
        },
    )
    logger.info("Merchant %s reassigned from %s to %s", merchant.pk, previous_rep_id, new_rep.pk)
    return merchant


@transaction.atomic
def archive_merchant(merchant: Merchant, actor) -> Merchant:
    """Soft-archive a merchant. Archiving twice is a no-op."""
    merchant = Merchant.objects.select_for_update().get(pk=merchant.pk)
    if merchant.is_archived:
        return merchant
    merchant.is_archived = True
    merchant.archived_at = timezone.now()
    merchant.save(update_fields=["is_archived", "archived_at", "updated_at"])
    emit_event(
        action=MERCHANT_ARCHIVED,
        entity_type="Merchant",
        entity_id=merchant.pk,
        actor=actor,
        changes={"archivedAt": merchant.archived_at.isoformat()},
    )
    return merchant


# ---------------------------------------------------------------------------
# log_activity
# ---------------------------------------------------------------------------

@transaction.atomic
def log_activity(
    merchant: Merchant,
    actor,
    *,
    type: str,
    summary: str,
    outcome: str = Activity.Outcome.NEUTRAL,
    description: str = "",
    duration_minutes: int | None = None,
    scheduled_at=None,
    completed_at=None,
) -> Activity:
    """Append an activity to a merchant's log.

    Raises
    ------
    django.core.exceptions.ValidationError
        If the duration is outside 1-480 minutes, the completion time is in
        the future, or a choice is invalid.
    """
    if merchant.is_archived:
        raise ValidationError("Cannot log activities on an archived merchant.")

    activity = Activity(
        merchant=merchant,
        actor=actor,
        type=type,
        outcome=outcome,
        summary=summary,
        description=description,
        duration_minutes=duration_minutes,
        scheduled_at=scheduled_at,
        completed_at=completed_at,
    )
    activity.full_clean()
    activity.save()

    emit_event(
        action=ACTIVITY_LOGGED,
        entity_type="Activity",
        entity_id=activity.pk,
        actor=actor,
        changes={
            "merchantId": str(merchant.pk),
            "type": activity.type,
            "outcome": activity.outcome,
        },
    )
    return activity
