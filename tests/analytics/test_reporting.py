from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from analytics.services import (
    merchant_overview,
    onboarding_progress_stats,
    overdue_pipelines,
    pending_qa,
    pipeline_conversion_stats,
    rep_performance,
)
from merchants.models import Activity, Merchant
from merchants.services import archive_merchant, create_merchant, log_activity
from onboarding.models import Onboarding
from onboarding.tracker import OnboardingTracker
from pipeline.models import Pipeline
from pipeline.state_machine import PipelineStateMachine

Stage = Pipeline.Stage


@pytest.fixture
def portfolio(rep_user, other_rep, admin_user):
    """Four merchants: one live, one won, one lost, one pending."""
    machine = PipelineStateMachine()
    tracker = OnboardingTracker(ledger=machine.ledger)
    merchants = {}
    for name, category, rep in [
        ("Live Cafe", Merchant.Category.DESSERTS_COFFEE, rep_user),
        ("Won Gym", Merchant.Category.SPORTS, rep_user),
        ("Lost Salon", Merchant.Category.BEAUTY, other_rep),
        ("Pending Shop", Merchant.Category.RETAIL, other_rep),
    ]:
        merchants[name] = create_merchant(name=name, category=category, assigned_rep=rep, actor=admin_user)

    result = machine.transition(merchants["Live Cafe"].pipeline, Stage.WON, rep_user)
    onboarding = tracker.update_checklist(
        result.onboarding, {name: True for name in Onboarding.CHECKLIST_FIELDS}, actor=rep_user,
    )
    tracker.mark_live(onboarding, actor=admin_user)
    machine.transition(merchants["Won Gym"].pipeline, Stage.WON, rep_user)
    machine.transition(merchants["Lost Salon"].pipeline, Stage.LOST, other_rep, lost_reason="No budget")
    return merchants


@pytest.mark.django_db
class TestPipelineConversion:
    def test_counts_and_rates(self, portfolio):
        stats = pipeline_conversion_stats()

        assert stats["total_merchants"] == 4
        assert stats["active_merchants"] == 3
        assert stats["won_count"] == 2
        assert stats["live_count"] == 1
        assert stats["lost_count"] == 1
        assert stats["conversion_rates"] == {
            "won_rate": Decimal("66.67"),
            "live_rate": Decimal("50.00"),
            "overall_rate": Decimal("25.00"),
        }
        assert stats["stage_distribution"][Stage.WON]["count"] == 2
        assert stats["stage_distribution"][Stage.CONTACTED]["count"] == 0

    def test_scoped_to_rep(self, portfolio, other_rep):
        stats = pipeline_conversion_stats(rep=other_rep)

        assert stats["total_merchants"] == 2
        assert stats["won_count"] == 0

    def test_empty_database(self, db):
        stats = pipeline_conversion_stats()

        assert stats["total_merchants"] == 0
        assert stats["conversion_rates"]["won_rate"] == Decimal("0.00")

    def test_archived_merchants_are_excluded(self, portfolio, admin_user):
        archive_merchant(portfolio["Pending Shop"], admin_user)

        assert pipeline_conversion_stats()["total_merchants"] == 3


@pytest.mark.django_db
def test_overdue_pipelines(portfolio, rep_user):
    now = timezone.now()
    pending = portfolio["Pending Shop"].pipeline
    Pipeline.objects.filter(pk=pending.pk).update(next_action_date=now - timedelta(days=3, hours=1))
    # Terminal stages never count as overdue.
    Pipeline.objects.filter(merchant=portfolio["Won Gym"]).update(next_action_date=now - timedelta(days=9))

    rows = overdue_pipelines(now=now)

    assert [row["pipeline"].pk for row in rows] == [pending.pk]
    assert rows[0]["days_past_due"] == 3


@pytest.mark.django_db
def test_onboarding_progress_stats(portfolio):
    stats = onboarding_progress_stats()

    assert stats["total"] == 2
    assert stats["status_distribution"] == {
        Onboarding.Status.IN_PROGRESS: 1,
        Onboarding.Status.LIVE: 1,
    }
    assert stats["requirement_completion"]["survey_filled"] == Decimal("50.00")
    assert stats["average_completion"] == Decimal("0.50")


@pytest.mark.django_db
def test_pending_qa(portfolio, rep_user):
    onboarding = Onboarding.objects.get(merchant=portfolio["Won Gym"])
    assert pending_qa() == []

    OnboardingTracker().update_checklist(
        onboarding,
        {"survey_filled": True, "offers_added": True, "branches_covered": True, "assets_complete": True},
        actor=rep_user,
    )

    rows = pending_qa()
    assert [row["onboarding"].pk for row in rows] == [onboarding.pk]
    assert rows[0]["days_pending"] == 0


@pytest.mark.django_db
def test_rep_performance(portfolio, rep_user, other_rep):
    log_activity(portfolio["Won Gym"], rep_user, type=Activity.Type.CALL, summary="Check-in")

    rows = {row["rep_id"]: row for row in rep_performance()}

    mine = rows[str(rep_user.pk)]
    assert mine["merchants"] == 2
    assert mine["won"] == 2
    assert mine["live"] == 1
    assert mine["activities"] == 1
    assert mine["win_rate"] == Decimal("100.00")
    assert mine["total_earnings"] == Decimal("25.00")

    theirs = rows[str(other_rep.pk)]
    assert theirs["merchants"] == 2
    assert theirs["won"] == 0
    assert theirs["total_earnings"] == Decimal("0.00")


@pytest.mark.django_db
def test_merchant_overview(portfolio):
    overview = merchant_overview()

    assert overview["total"] == 4
    assert overview["by_category"][Merchant.Category.SPORTS] == 1
    assert overview["by_category"][Merchant.Category.FOOD] == 0
