"""Read-only reporting over pipelines, onboardings, activities and payouts."""
from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db.models import Avg, Count, Q, Sum
from django.utils import timezone

from accounts.models import User
from merchants.models import Merchant
from onboarding.models import Onboarding
from onboarding.tracker import OnboardingTracker
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _percentage(part: int, whole: int) -> Decimal:
    if not whole:
        return ZERO
    return (Decimal(part) * 100 / Decimal(whole)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _safe_decimal(value, default="0.00"):
    if value is None:
        return Decimal(default)
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _merchant_filter(prefix: str, rep=None) -> Q:
    q = Q(**{f"{prefix}is_archived": False})
    if rep is not None:
        q &= Q(**{f"{prefix}assigned_rep": rep})
    return q


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

def pipeline_conversion_stats(rep=None) -> dict:
    """Stage distribution and conversion rates of active merchants.

    ``won_rate`` is won over non-lost merchants, ``live_rate`` is live over
    won, and ``overall_rate`` is live over all merchants; all percentages.
    """
    pipelines = Pipeline.objects.filter(_merchant_filter("merchant__", rep))
    counts = {
        row["current_stage"]: row["count"]
        for row in pipelines.order_by().values("current_stage").annotate(count=Count("id"))
    }
    total = sum(counts.values())
    lost = counts.get(Pipeline.Stage.LOST, 0)
    won = counts.get(Pipeline.Stage.WON, 0)
    live = Onboarding.objects.filter(
        _merchant_filter("merchant__", rep),
        status=Onboarding.Status.LIVE,
    ).count()
    active = total - lost

    return {
        "total_merchants": total,
        "active_merchants": active,
        "won_count": won,
        "live_count": live,
        "lost_count": lost,
        "conversion_rates": {
            "won_rate": _percentage(won, active),
            "live_rate": _percentage(live, won),
            "overall_rate": _percentage(live, total),
        },
        "stage_distribution": {
            stage: {
                "count": counts.get(stage, 0),
                "percentage": _percentage(counts.get(stage, 0), total),
            }
            for stage in Pipeline.Stage.values
        },
    }


def overdue_pipelines(now=None, rep=None) -> list[dict]:
    """Non-terminal pipelines whose next action date has passed."""
    now = now or timezone.now()
    pipelines = (
        Pipeline.objects
        .filter(_merchant_filter("merchant__", rep))
        .exclude(current_stage__in=Pipeline.TERMINAL_STAGES)
        .filter(next_action_date__lt=now)
        .select_related("merchant", "merchant__assigned_rep")
        .order_by("next_action_date")
    )
    return [
        {
            "pipeline": pipeline,
            "days_past_due": (now - pipeline.next_action_date).days,
        }
        for pipeline in pipelines
    ]


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

def onboarding_progress_stats(rep=None) -> dict:
    """Status distribution and completion rate of every checklist item."""
    onboardings = Onboarding.objects.filter(_merchant_filter("merchant__", rep))
    aggregates = onboardings.aggregate(
        total=Count("id"),
        live=Count("id", filter=Q(status=Onboarding.Status.LIVE)),
        average_completion=Avg("completion_percentage"),
        **{f"{name}_done": Count("id", filter=Q(**{name: True})) for name in Onboarding.CHECKLIST_FIELDS},
    )
    total = aggregates["total"]
    return {
        "total": total,
        "status_distribution": {
            Onboarding.Status.IN_PROGRESS: total - aggregates["live"],
            Onboarding.Status.LIVE: aggregates["live"],
        },
        "requirement_completion": {
            name: _percentage(aggregates[f"{name}_done"], total) for name in Onboarding.CHECKLIST_FIELDS
        },
        "average_completion": _safe_decimal(aggregates["average_completion"]).quantize(Decimal("0.01")),
    }


def pending_qa(now=None, rep=None) -> list[dict]:
    """In-progress onboardings waiting only for QA approval."""
    now = now or timezone.now()
    filters = {name: True for name in Onboarding.CHECKLIST_FIELDS if name != "qa_approved"}
    onboardings = (
        Onboarding.objects
        .filter(_merchant_filter("merchant__", rep))
        .filter(status=Onboarding.Status.IN_PROGRESS, qa_approved=False, **filters)
        .select_related("merchant", "merchant__assigned_rep")
        .order_by("updated_at")
    )
    return [
        {"onboarding": onboarding, "days_pending": (now - onboarding.updated_at).days}
        for onboarding in onboardings
        if OnboardingTracker.is_ready_for_qa(onboarding)
    ]


# ---------------------------------------------------------------------------
# Representatives
# ---------------------------------------------------------------------------

def rep_performance() -> list[dict]:
    """Per-representative merchant, conversion, activity and earnings totals."""
    reps = User.objects.reps().order_by("last_name", "first_name")
    active = Q(assigned_merchants__is_archived=False)
    merchant_counts = {
        row["id"]: row
        for row in reps.values("id").annotate(
            merchants=Count("assigned_merchants", filter=active, distinct=True),
            won=Count(
                "assigned_merchants",
                filter=active & Q(assigned_merchants__pipeline__current_stage=Pipeline.Stage.WON),
                distinct=True,
            ),
            live=Count(
                "assigned_merchants",
                filter=active & Q(assigned_merchants__onboarding__status=Onboarding.Status.LIVE),
                distinct=True,
            ),
        )
    }
    activity_counts = dict(
        reps.values_list("id").annotate(count=Count("activities_logged", distinct=True))
    )
    earnings = {
        row["recipient"]: row["total"]
        for row in PayoutLedgerEntry.objects
        .filter(status=PayoutLedgerEntry.Status.PAID)
        .order_by()
        .values("recipient")
        .annotate(total=Sum("amount"))
    }

    rows = []
    for rep in reps:
        counts = merchant_counts.get(rep.id, {})
        merchants = counts.get("merchants", 0)
        won = counts.get("won", 0)
        rows.append({
            "rep_id": str(rep.id),
            "rep_name": rep.get_full_name(),
            "merchants": merchants,
            "won": won,
            "live": counts.get("live", 0),
            "activities": activity_counts.get(rep.id, 0),
            "win_rate": _percentage(won, merchants),
            "total_earnings": _safe_decimal(earnings.get(rep.id)),
        })
    logger.debug("Computed rep performance for %d reps", len(rows))
    return rows


def merchant_overview(rep=None) -> dict:
    """Counts of active merchants by category."""
    merchants = Merchant.objects.filter(_merchant_filter("", rep))
    by_category = {
        row["category"]: row["count"]
        for row in merchants.order_by().values("category").annotate(count=Count("id"))
    }
    return {
        "total": sum(by_category.values()),
        "by_category": {category: by_category.get(category, 0) for category in Merchant.Category.values},
    }
