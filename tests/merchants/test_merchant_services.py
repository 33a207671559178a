from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.utils import timezone

from core.events import MERCHANT_ARCHIVED, MERCHANT_CREATED, MERCHANT_REASSIGNED
from core.models import AuditLog
from merchants.models import Activity, Merchant
from merchants.services import (
    archive_merchant,
    create_merchant,
    log_activity,
    reassign_rep,
    update_merchant,
)
from onboarding.models import Onboarding
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline


@pytest.mark.django_db
class TestCreateMerchant:
    def test_creates_pipeline_and_history(self, rep_user, admin_user):
        merchant = create_merchant(
            name="Base Padel Club",
            category=Merchant.Category.SPORTS,
            assigned_rep=rep_user,
            actor=admin_user,
            location="Abdoun, Amman",
        )

        pipeline = Pipeline.objects.get(merchant=merchant)
        assert pipeline.current_stage == Pipeline.Stage.PENDING_FIRST_VISIT
        history = pipeline.stage_history.get()
        assert history.from_stage == ""
        assert history.to_stage == Pipeline.Stage.PENDING_FIRST_VISIT
        assert merchant.created_by == admin_user
        assert AuditLog.objects.filter(action=MERCHANT_CREATED, entity_id=str(merchant.pk)).exists()

    def test_read_only_users_cannot_own_merchants(self, read_only_user, admin_user):
        with pytest.raises(ValidationError):
            create_merchant(
                name="Glow Beauty Salon",
                category=Merchant.Category.BEAUTY,
                assigned_rep=read_only_user,
                actor=admin_user,
            )
        assert not Merchant.objects.exists()

    def test_unknown_field_is_rejected(self, rep_user, admin_user):
        with pytest.raises(ValidationError):
            create_merchant(
                name="Tech Repair Shop",
                category=Merchant.Category.ELECTRONICS,
                assigned_rep=rep_user,
                actor=admin_user,
                is_archived=True,
            )

    def test_invalid_category_is_rejected(self, rep_user, admin_user):
        with pytest.raises(ValidationError):
            create_merchant(name="Mystery", category="PETS", assigned_rep=rep_user, actor=admin_user)

    def test_duplicate_name_and_phone_is_rejected(self, merchant, rep_user, admin_user):
        with pytest.raises(ValidationError):
            create_merchant(
                name=merchant.name,
                category=Merchant.Category.FOOD,
                assigned_rep=rep_user,
                actor=admin_user,
                contact_phone=merchant.contact_phone,
            )
        assert Pipeline.objects.count() == 1


@pytest.mark.django_db
class TestMerchantChanges:
    def test_update_profile(self, merchant, admin_user):
        merchant = update_merchant(merchant, {"location": "Jabal Amman"}, admin_user)

        assert merchant.location == "Jabal Amman"

    def test_update_rejects_non_profile_fields(self, merchant, admin_user, other_rep):
        with pytest.raises(ValidationError):
            update_merchant(merchant, {"assigned_rep": other_rep}, admin_user)

    def test_reassign_keeps_existing_payouts_with_previous_rep(self, merchant, rep_user, other_rep, admin_user):
        from pipeline.state_machine import PipelineStateMachine

        PipelineStateMachine().transition(merchant.pipeline, Pipeline.Stage.WON, rep_user)
        merchant = reassign_rep(merchant, other_rep, admin_user)

        assert merchant.assigned_rep == other_rep
        assert PayoutLedgerEntry.objects.get(merchant=merchant).recipient == rep_user
        assert AuditLog.objects.filter(action=MERCHANT_REASSIGNED).count() == 1

    def test_reassign_to_same_rep_is_a_no_op(self, merchant, rep_user, admin_user):
        reassign_rep(merchant, rep_user, admin_user)

        assert not AuditLog.objects.filter(action=MERCHANT_REASSIGNED).exists()

    def test_archive_is_idempotent(self, merchant, admin_user):
        first = archive_merchant(merchant, admin_user)
        second = archive_merchant(merchant, admin_user)

        assert first.is_archived is True
        assert second.archived_at == first.archived_at
        assert AuditLog.objects.filter(action=MERCHANT_ARCHIVED).count() == 1
        assert Merchant.objects.active().count() == 0


@pytest.mark.django_db
class TestLogActivity:
    def test_log_activity(self, merchant, rep_user):
        activity = log_activity(
            merchant,
            rep_user,
            type=Activity.Type.CALL,
            summary="Intro call",
            outcome=Activity.Outcome.POSITIVE,
            duration_minutes=15,
            completed_at=timezone.now() - timedelta(hours=1),
        )

        assert activity.merchant == merchant
        assert merchant.activities.count() == 1

    @pytest.mark.parametrize("minutes", [0, 481])
    def test_duration_out_of_range(self, merchant, rep_user, minutes):
        with pytest.raises(ValidationError):
            log_activity(merchant, rep_user, type=Activity.Type.MEETING, summary="Visit", duration_minutes=minutes)

    def test_completed_in_the_future(self, merchant, rep_user):
        with pytest.raises(ValidationError):
            log_activity(
                merchant,
                rep_user,
                type=Activity.Type.CALL,
                summary="Call",
                completed_at=timezone.now() + timedelta(days=1),
            )

    def test_archived_merchant(self, merchant, rep_user, admin_user):
        merchant = archive_merchant(merchant, admin_user)

        with pytest.raises(ValidationError):
            log_activity(merchant, rep_user, type=Activity.Type.CALL, summary="Call")


@pytest.mark.django_db
def test_seed_command_builds_demo_dataset_once():
    call_command("seed_crm_demo")
    call_command("seed_crm_demo")

    assert Merchant.objects.count() == 5
    assert Pipeline.objects.count() == 5
    assert Pipeline.objects.filter(current_stage=Pipeline.Stage.WON).count() == 2
    assert Onboarding.objects.filter(status=Onboarding.Status.LIVE).count() == 1
    assert PayoutLedgerEntry.objects.filter(reason=PayoutLedgerEntry.Reason.WON).count() == 2
    assert PayoutLedgerEntry.objects.filter(reason=PayoutLedgerEntry.Reason.LIVE).count() == 1
    assert Activity.objects.count() == 10
