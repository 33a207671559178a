"""Structured domain events.

Every mutating service reports what it did through :func:`emit_event`.
The event is persisted as an :class:`~core.models.AuditLog` row inside the
caller's transaction, logged, and broadcast on the :data:`domain_event`
signal once the transaction commits so listeners never observe rolled-back
work.
"""
from __future__ import annotations

import logging
from typing import Any

from django.db import DEFAULT_DB_ALIAS, transaction
from django.dispatch import Signal

from core.models import AuditLog

logger = logging.getLogger("crm")

# Sent with ``event`` = {action, entityType, entityId, actorId, changes}.
domain_event = Signal()

PIPELINE_STAGE_CHANGED = "PIPELINE_STAGE_CHANGED"
PIPELINE_NEXT_ACTION_UPDATED = "PIPELINE_NEXT_ACTION_UPDATED"
ONBOARDING_CREATED = "ONBOARDING_CREATED"
ONBOARDING_UPDATED = "ONBOARDING_UPDATED"
ONBOARDING_LIVE = "ONBOARDING_LIVE"
PAYOUT_RECORDED = "PAYOUT_RECORDED"
PAYOUT_STATUS_CHANGED = "PAYOUT_STATUS_CHANGED"
MERCHANT_CREATED = "MERCHANT_CREATED"
MERCHANT_UPDATED = "MERCHANT_UPDATED"
MERCHANT_ARCHIVED = "MERCHANT_ARCHIVED"
MERCHANT_REASSIGNED = "MERCHANT_REASSIGNED"
ACTIVITY_LOGGED = "ACTIVITY_LOGGED"


def build_event(*, action: str, entity_type: str, entity_id, actor, changes: dict | None) -> dict[str, Any]:
    return {
        "action": action,
        "entityType": entity_type,
        "entityId": str(entity_id),
        "actorId": str(actor.pk) if actor is not None else None,
        "changes": changes or {},
    }


def emit_event(
    *,
    action: str,
    entity_type: str,
    entity_id,
    actor=None,
    changes: dict[str, Any] | None = None,
    using: str = DEFAULT_DB_ALIAS,
) -> AuditLog:
    """Persist, log and broadcast a domain event.

    Parameters
    ----------
    action : str
        Event name, e.g. ``PIPELINE_STAGE_CHANGED``.
    entity_type : str
        Model name of the affected entity.
    entity_id
        Primary key of the affected entity.
    actor : accounts.models.User, optional
        User who performed the action.
    changes : dict, optional
        Before/after values or any other payload worth keeping.
    using : str
        Database alias of the surrounding transaction.

    Returns
    -------
    AuditLog
    """
    event = build_event(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        changes=changes,
    )
    audit = AuditLog.objects.using(using).create(
        actor=actor,
        action=action,
        entity_type=entity_type,
        entity_id=event["entityId"],
        changes=event["changes"],
    )
    logger.info(
        "%s %s=%s actor=%s",
        action,
        entity_type,
        event["entityId"],
        event["actorId"],
        extra={"event": event},
    )
    transaction.on_commit(
        lambda: domain_event.send(sender=AuditLog, event=event),
        using=using,
    )
    return audit
