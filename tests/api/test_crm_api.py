from datetime import datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from core.exceptions import StoreConflict
from merchants.models import Merchant
from onboarding.models import Onboarding
from payouts.ledger import PayoutLedger
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline
from pipeline.state_machine import PipelineStateMachine


@pytest.mark.django_db
def test_api_requires_authentication(api_client):
    resp = api_client.get("/api/v1/merchants/")

    assert resp.status_code in (401, 403)


@pytest.mark.django_db
class TestMerchantEndpoints:
    def test_create_merchant(self, admin_client, rep_user):
        resp = admin_client.post(
            "/api/v1/merchants/",
            {
                "name": "Bun Fellows Coffee",
                "category": "DESSERTS_COFFEE",
                "assigned_rep": str(rep_user.pk),
                "contact_phone": "+962791111113",
            },
            format="json",
        )

        assert resp.status_code == 201, resp.content
        assert resp.data["current_stage"] == Pipeline.Stage.PENDING_FIRST_VISIT
        assert Pipeline.objects.filter(merchant_id=resp.data["id"]).exists()

    def test_create_duplicate_merchant_returns_400(self, admin_client, merchant, rep_user):
        resp = admin_client.post(
            "/api/v1/merchants/",
            {
                "name": merchant.name,
                "category": "FOOD",
                "assigned_rep": str(rep_user.pk),
                "contact_phone": merchant.contact_phone,
            },
            format="json",
        )

        assert resp.status_code == 400

    def test_list_hides_archived(self, admin_client, merchant):
        assert admin_client.get("/api/v1/merchants/").data["count"] == 1

        resp = admin_client.delete(f"/api/v1/merchants/{merchant.pk}/")
        assert resp.status_code == 204
        assert Merchant.objects.get(pk=merchant.pk).is_archived is True

        assert admin_client.get("/api/v1/merchants/").data["count"] == 0
        assert admin_client.get("/api/v1/merchants/?include_archived=true").data["count"] == 1

    def test_partial_update_and_reassign(self, admin_client, merchant, other_rep):
        resp = admin_client.patch(
            f"/api/v1/merchants/{merchant.pk}/",
            {"location": "Sweifieh, Amman", "assigned_rep": str(other_rep.pk)},
            format="json",
        )

        assert resp.status_code == 200, resp.content
        merchant.refresh_from_db()
        assert merchant.location == "Sweifieh, Amman"
        assert merchant.assigned_rep == other_rep

    def test_pipeline_detail(self, rep_client, merchant):
        resp = rep_client.get(f"/api/v1/merchants/{merchant.pk}/pipeline/")

        assert resp.status_code == 200
        assert resp.data["current_stage"] == Pipeline.Stage.PENDING_FIRST_VISIT
        assert len(resp.data["stage_history"]) == 1
        assert Pipeline.Stage.CONTACTED in resp.data["possible_stages"]

    def test_next_action(self, rep_client, merchant):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/next-action/",
            {"description": "Send contract draft", "date": "2030-01-15T10:00:00Z"},
            format="json",
        )

        assert resp.status_code == 200, resp.content
        assert resp.data["next_action_description"] == "Send contract draft"

    def test_log_and_list_activities(self, rep_client, merchant):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/activities/",
            {"type": "CALL", "summary": "Intro call", "duration_minutes": 10},
            format="json",
        )
        assert resp.status_code == 201, resp.content

        resp = rep_client.get(f"/api/v1/merchants/{merchant.pk}/activities/")
        assert resp.status_code == 200
        assert resp.data["count"] == 1

    def test_activity_with_invalid_duration_returns_400(self, rep_client, merchant):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/activities/",
            {"type": "CALL", "summary": "Marathon call", "duration_minutes": 600},
            format="json",
        )

        assert resp.status_code == 400


@pytest.mark.django_db
class TestTransitionEndpoint:
    def test_won_creates_onboarding_and_payout(self, rep_client, merchant, rep_user):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/transition/",
            {"stage": "WON", "notes": "Signed"},
            format="json",
        )

        assert resp.status_code == 200, resp.content
        assert resp.data["current_stage"] == "WON"
        assert resp.data["onboarding_id"] == str(Onboarding.objects.get(merchant=merchant).pk)
        assert resp.data["payout_created"] is True
        assert PayoutLedgerEntry.objects.get(merchant=merchant).recipient == rep_user

    def test_unknown_stage_returns_400_with_code(self, rep_client, merchant):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/transition/",
            {"stage": "NEGOTIATING"},
            format="json",
        )

        assert resp.status_code == 400
        assert resp.data["code"] == "invalid_transition"
        assert resp.data["detail"]

    def test_lost_without_reason_returns_400(self, rep_client, merchant):
        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/transition/",
            {"stage": "LOST"},
            format="json",
        )

        assert resp.status_code == 400
        assert resp.data["code"] == "missing_reason"

    def test_persistent_store_conflict_returns_503(self, rep_client, merchant, monkeypatch):
        def conflict(self, *args, **kwargs):
            raise StoreConflict("row locked")

        monkeypatch.setattr(PipelineStateMachine, "transition", conflict)

        resp = rep_client.post(
            f"/api/v1/merchants/{merchant.pk}/transition/",
            {"stage": "CONTACTED"},
            format="json",
        )

        assert resp.status_code == 503
        assert resp.data["code"] == "store_conflict"


@pytest.mark.django_db
class TestOnboardingEndpoints:
    @pytest.fixture
    def onboarding(self, merchant, rep_user):
        return PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user).onboarding

    def test_mark_live_with_incomplete_checklist(self, rep_client, onboarding):
        resp = rep_client.post(f"/api/v1/onboarding/{onboarding.pk}/mark-live/")

        assert resp.status_code == 400
        assert resp.data["code"] == "incomplete_checklist"
        assert "qa_approved" in resp.data["context"]["missing"]

    def test_checklist_then_mark_live(self, rep_client, onboarding, merchant):
        resp = rep_client.patch(
            f"/api/v1/onboarding/{onboarding.pk}/checklist/",
            {name: True for name in Onboarding.CHECKLIST_FIELDS},
            format="json",
        )
        assert resp.status_code == 200, resp.content
        assert Decimal(resp.data["completion_percentage"]) == Decimal("1.00")

        resp = rep_client.post(f"/api/v1/onboarding/{onboarding.pk}/mark-live/")
        assert resp.status_code == 200
        assert resp.data["status"] == "LIVE"
        assert resp.data["payout_id"] is not None

        resp = rep_client.post(f"/api/v1/onboarding/{onboarding.pk}/mark-live/")
        assert resp.status_code == 200
        assert resp.data["payout_id"] is None
        assert PayoutLedgerEntry.objects.filter(merchant=merchant).count() == 2

    def test_empty_checklist_update_returns_400(self, rep_client, onboarding):
        resp = rep_client.patch(f"/api/v1/onboarding/{onboarding.pk}/checklist/", {}, format="json")

        assert resp.status_code == 400

    def test_progress_and_pending_qa(self, rep_client, onboarding):
        resp = rep_client.get("/api/v1/onboarding/progress/")
        assert resp.status_code == 200
        assert resp.data["total"] == 1

        resp = rep_client.get("/api/v1/onboarding/pending-qa/")
        assert resp.status_code == 200
        assert resp.data == []


@pytest.mark.django_db
class TestPayoutEndpoints:
    def test_payouts_are_read_only(self, admin_client):
        resp = admin_client.post("/api/v1/payouts/", {}, format="json")

        assert resp.status_code == 405

    def test_mark_paid_and_cancel(self, admin_client, merchant, rep_user, other_rep):
        ledger = PayoutLedger()
        pending, _ = ledger.record(
            merchant, rep_user, PayoutLedgerEntry.Reason.ADJUSTMENT, 2,
            status=PayoutLedgerEntry.Status.PENDING,
        )
        other, _ = ledger.record(
            merchant, other_rep, PayoutLedgerEntry.Reason.ADJUSTMENT, 2,
            status=PayoutLedgerEntry.Status.PENDING,
        )

        resp = admin_client.post(f"/api/v1/payouts/{pending.pk}/mark-paid/")
        assert resp.status_code == 200
        assert resp.data["status"] == "PAID"

        resp = admin_client.post(f"/api/v1/payouts/{pending.pk}/cancel/")
        assert resp.status_code == 400
        assert resp.data["code"] == "invalid_payout"

        resp = admin_client.post(f"/api/v1/payouts/{other.pk}/cancel/")
        assert resp.status_code == 200
        assert resp.data["status"] == "CANCELLED"

    def test_summary_for_recipient(self, admin_client, merchant, rep_user):
        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)

        resp = admin_client.get(f"/api/v1/payouts/summary/?recipient={rep_user.pk}")

        assert resp.status_code == 200
        assert resp.data["recipient"] == str(rep_user.pk)
        assert Decimal(str(resp.data["totals"]["PAID"])) == Decimal("9.00")

    def test_period_narrows_list_and_summary(self, admin_client, merchant, rep_user):
        ledger = PayoutLedger()
        ledger.record(merchant, rep_user, PayoutLedgerEntry.Reason.WON, 9)
        old, _ = ledger.record(merchant, rep_user, PayoutLedgerEntry.Reason.ADJUSTMENT, 4)
        PayoutLedgerEntry.objects.filter(pk=old.pk).update(
            created_at=datetime(2020, 3, 15, 12, tzinfo=timezone.get_current_timezone()),
        )
        this_month = timezone.localdate().strftime("%Y-%m")

        resp = admin_client.get(f"/api/v1/payouts/?period={this_month}")
        assert resp.status_code == 200
        assert resp.data["count"] == 1

        resp = admin_client.get("/api/v1/payouts/?period=2020-03")
        assert [row["id"] for row in resp.data["results"]] == [str(old.pk)]

        resp = admin_client.get(f"/api/v1/payouts/summary/?recipient={rep_user.pk}&period=2020-03")
        assert resp.data["period"] == "2020-03"
        assert Decimal(str(resp.data["totals"]["PAID"])) == Decimal("4.00")

    @pytest.mark.parametrize("period", ["2024-13", "March", "2024-3"])
    def test_malformed_period_returns_400(self, admin_client, period):
        resp = admin_client.get(f"/api/v1/payouts/?period={period}")

        assert resp.status_code == 400


@pytest.mark.django_db
class TestAnalyticsEndpoints:
    def test_pipeline_stats(self, admin_client, merchant):
        resp = admin_client.get("/api/v1/analytics/pipeline/")

        assert resp.status_code == 200
        assert resp.data["total_merchants"] == 1

    def test_rep_filter_with_unknown_user(self, admin_client):
        resp = admin_client.get("/api/v1/analytics/pipeline/?rep=not-a-uuid")

        assert resp.status_code == 400

    @pytest.mark.parametrize("path", ["overdue", "onboarding", "reps", "overview"])
    def test_other_reports(self, admin_client, merchant, path):
        resp = admin_client.get(f"/api/v1/analytics/{path}/")

        assert resp.status_code == 200


@pytest.mark.django_db
def test_mine_filter_lists_only_own_merchants(rep_client, merchant, other_rep, admin_user):
    from merchants.services import create_merchant

    create_merchant(name="Glow Beauty Salon", category="BEAUTY", assigned_rep=other_rep, actor=admin_user)

    assert rep_client.get("/api/v1/merchants/").data["count"] == 2
    resp = rep_client.get("/api/v1/merchants/?mine=true")
    assert [row["id"] for row in resp.data["results"]] == [str(merchant.pk)]
