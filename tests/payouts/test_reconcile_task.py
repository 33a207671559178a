from decimal import Decimal

import pytest
from django.db import OperationalError

from core.exceptions import StoreConflict
from onboarding.tracker import OnboardingTracker
from payouts import tasks
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline
from pipeline.state_machine import PipelineStateMachine


@pytest.mark.django_db
class TestReconcilePayouts:
    def test_nothing_to_repair(self, merchant, rep_user):
        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)

        assert tasks.reconcile_payouts() == {"WON": 0, "LIVE": 0}
        assert PayoutLedgerEntry.objects.count() == 1

    def test_missing_won_and_live_entries_are_recreated(self, merchant, rep_user, admin_user):
        machine = PipelineStateMachine()
        result = machine.transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        tracker = OnboardingTracker()
        onboarding = tracker.update_checklist(
            result.onboarding,
            {name: True for name in ("survey_filled", "offers_added", "branches_covered", "assets_complete", "qa_approved")},
            actor=rep_user,
        )
        tracker.mark_live(onboarding, actor=admin_user)
        PayoutLedgerEntry.objects.all().delete()

        created = tasks.reconcile_payouts()

        assert created == {"WON": 1, "LIVE": 1}
        amounts = dict(PayoutLedgerEntry.objects.values_list("reason", "amount"))
        assert amounts == {"WON": Decimal("9.00"), "LIVE": Decimal("7.00")}

    def test_reassigned_merchants_are_not_paid_again(self, merchant, rep_user, other_rep, admin_user):
        from merchants.services import reassign_rep

        result = PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        tracker = OnboardingTracker()
        onboarding = tracker.update_checklist(
            result.onboarding,
            {name: True for name in ("survey_filled", "offers_added", "branches_covered", "assets_complete", "qa_approved")},
            actor=rep_user,
        )
        tracker.mark_live(onboarding, actor=admin_user)
        reassign_rep(merchant, other_rep, admin_user)

        assert tasks.reconcile_payouts() == {"WON": 0, "LIVE": 0}
        assert set(PayoutLedgerEntry.objects.values_list("reason", "recipient")) == {
            ("WON", rep_user.pk),
            ("LIVE", rep_user.pk),
        }

    def test_cancelled_bonus_is_not_recreated(self, merchant, rep_user):
        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        PayoutLedgerEntry.objects.update(status=PayoutLedgerEntry.Status.CANCELLED)

        assert tasks.reconcile_payouts() == {"WON": 0, "LIVE": 0}

    def test_archived_merchants_are_skipped(self, merchant, rep_user, admin_user):
        from merchants.services import archive_merchant

        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        PayoutLedgerEntry.objects.all().delete()
        archive_merchant(merchant, admin_user)

        assert tasks.reconcile_payouts() == {"WON": 0, "LIVE": 0}

    def test_task_runs_eagerly(self, merchant, rep_user):
        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        PayoutLedgerEntry.objects.all().delete()

        result = tasks.reconcile_missing_payouts.delay()

        assert result.get() == {"WON": 1, "LIVE": 0}

    def test_operational_errors_become_store_conflicts(self, monkeypatch):
        def boom():
            raise OperationalError("database is locked")

        monkeypatch.setattr(tasks, "reconcile_payouts", boom)

        with pytest.raises(StoreConflict):
            tasks.reconcile_missing_payouts.run()
