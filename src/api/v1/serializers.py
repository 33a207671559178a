"""Serializers for the merchant CRM API v1."""
from django.contrib.auth import get_user_model
from rest_framework import serializers

from merchants.models import Activity, Merchant
from merchants.services import PROFILE_FIELDS
from onboarding.models import Onboarding
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline, PipelineStageHistory

User = get_user_model()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserSummarySerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(source="get_full_name", read_only=True)

    class Meta:
        model = User
        fields = ["id", "email", "full_name", "role"]
        read_only_fields = fields


# ---------------------------------------------------------------------------
# Merchants
# ---------------------------------------------------------------------------

class MerchantSerializer(serializers.ModelSerializer):
    """Read/write serializer for Merchant. Writes go through merchants.services."""

    assigned_rep = serializers.PrimaryKeyRelatedField(queryset=User.objects.filter(is_active=True))
    assigned_rep_name = serializers.CharField(source="assigned_rep.get_full_name", read_only=True)
    current_stage = serializers.CharField(source="pipeline.current_stage", read_only=True, default=None)

    class Meta:
        model = Merchant
        fields = [
            "id", "name", "category",
            "contact_person_name", "contact_phone", "contact_email",
            "location", "description",
            "assigned_rep", "assigned_rep_name", "current_stage",
            "is_archived", "archived_at", "created_by",
            "created_at", "updated_at",
        ]
        read_only_fields = [
            "id", "is_archived", "archived_at", "created_by",
            "created_at", "updated_at",
        ]
        # Uniqueness is checked by Merchant.full_clean() inside the service.
        validators = []

    def profile_changes(self):
        return {
            name: value
            for name, value in self.validated_data.items()
            if name in PROFILE_FIELDS
        }


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class PipelineStageHistorySerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source="actor.get_full_name", read_only=True, default=None)

    class Meta:
        model = PipelineStageHistory
        fields = ["id", "from_stage", "to_stage", "actor", "actor_name", "notes", "created_at"]
        read_only_fields = fields


class PipelineSerializer(serializers.ModelSerializer):
    is_overdue = serializers.BooleanField(read_only=True)
    is_terminal = serializers.BooleanField(read_only=True)
    stage_history = PipelineStageHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Pipeline
        fields = [
            "id", "merchant", "current_stage",
            "next_action_description", "next_action_date",
            "lost_reason", "is_overdue", "is_terminal",
            "last_updated_by", "updated_at", "stage_history",
        ]
        read_only_fields = fields


class TransitionSerializer(serializers.Serializer):
    # Plain CharField: unknown stages are rejected by the state machine.
    stage = serializers.CharField(max_length=30)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    lost_reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)
    next_action_description = serializers.CharField(required=False, allow_blank=True, max_length=255)
    next_action_date = serializers.DateTimeField(required=False)


class NextActionSerializer(serializers.Serializer):
    description = serializers.CharField(allow_blank=True, max_length=255)
    date = serializers.DateTimeField(allow_null=True, required=False, default=None)


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

class ActivitySerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source="actor.get_full_name", read_only=True)
    merchant_name = serializers.CharField(source="merchant.name", read_only=True)

    class Meta:
        model = Activity
        fields = [
            "id", "merchant", "merchant_name", "actor", "actor_name",
            "type", "outcome", "summary", "description",
            "duration_minutes", "scheduled_at", "completed_at", "created_at",
        ]
        read_only_fields = ["id", "merchant", "merchant_name", "actor", "actor_name", "created_at"]


# ---------------------------------------------------------------------------
# Onboarding
# ---------------------------------------------------------------------------

class OnboardingSerializer(serializers.ModelSerializer):
    merchant_name = serializers.CharField(source="merchant.name", read_only=True)
    assigned_rep = serializers.UUIDField(source="merchant.assigned_rep_id", read_only=True)

    class Meta:
        model = Onboarding
        fields = [
            "id", "merchant", "merchant_name", "assigned_rep", "status",
            "survey_filled", "offers_added", "branches_covered",
            "assets_complete", "qa_approved",
            "completion_percentage", "live_date",
            "qa_notes", "internal_notes",
            "last_updated_by", "created_at", "updated_at",
        ]
        read_only_fields = fields


class ChecklistUpdateSerializer(serializers.Serializer):
    survey_filled = serializers.BooleanField(required=False)
    offers_added = serializers.BooleanField(required=False)
    branches_covered = serializers.BooleanField(required=False)
    assets_complete = serializers.BooleanField(required=False)
    qa_approved = serializers.BooleanField(required=False)
    qa_notes = serializers.CharField(required=False, allow_blank=True)
    internal_notes = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one checklist item or note is required.")
        return attrs


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------

class PayoutLedgerEntrySerializer(serializers.ModelSerializer):
    merchant_name = serializers.CharField(source="merchant.name", read_only=True)
    recipient_name = serializers.CharField(source="recipient.get_full_name", read_only=True)

    class Meta:
        model = PayoutLedgerEntry
        fields = [
            "id", "merchant", "merchant_name", "recipient", "recipient_name",
            "reason", "amount", "currency", "status", "description",
            "paid_at", "created_by", "created_at",
        ]
        read_only_fields = fields
