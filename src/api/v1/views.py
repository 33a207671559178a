"""ViewSets for the merchant CRM API v1.

Views stay thin: every mutation is delegated to a service and wrapped in
:func:`core.retry.call_with_retry`, so each retry runs a fresh transaction.
"""
import logging
import re
from datetime import datetime

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from analytics import services as analytics_services
from core.retry import call_with_retry
from merchants.models import Activity, Merchant
from merchants.services import (
    archive_merchant,
    create_merchant,
    log_activity,
    reassign_rep,
    update_merchant,
)
from onboarding.models import Onboarding
from onboarding.tracker import OnboardingTracker
from payouts.ledger import PayoutLedger
from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline
from pipeline.state_machine import PipelineStateMachine

from api.v1.serializers import (
    ActivitySerializer,
    ChecklistUpdateSerializer,
    MerchantSerializer,
    NextActionSerializer,
    OnboardingSerializer,
    PayoutLedgerEntrySerializer,
    PipelineSerializer,
    TransitionSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()


def _truthy(value):
    return str(value).lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Merchant ViewSet
# ---------------------------------------------------------------------------

class MerchantViewSet(viewsets.ModelViewSet):
    """
    CRUD + pipeline workflow for merchants.

    - list: active merchants (``?include_archived=true`` to see all,
      ``?mine=true`` for the caller's own)
    - create: merchant and its pipeline at PENDING_FIRST_VISIT
    - update / partial_update: profile fields and representative
    - destroy: archives; merchants are never deleted
    - pipeline: current stage, next action and stage history
    - transition: move to another stage
    - next_action: replace the next action
    - activities: list or log activities
    """

    serializer_class = MerchantSerializer
    queryset = Merchant.objects.select_related("assigned_rep", "pipeline")
    filterset_fields = ["category", "assigned_rep", "is_archived", "pipeline__current_stage"]
    search_fields = ["name", "contact_person_name", "contact_phone", "location"]
    ordering_fields = ["name", "created_at", "updated_at"]

    def get_queryset(self):
        qs = super().get_queryset()
        params = self.request.query_params
        if self.action == "list" and "is_archived" not in params and not _truthy(params.get("include_archived")):
            qs = qs.active()
        if _truthy(params.get("mine")):
            qs = qs.assigned_to(self.request.user)
        return qs

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.profile_changes()
        merchant = call_with_retry(
            create_merchant,
            name=data.pop("name"),
            category=data.pop("category"),
            assigned_rep=serializer.validated_data["assigned_rep"],
            actor=request.user,
            **data,
        )
        merchant = self.get_queryset().get(pk=merchant.pk)
        return Response(self.get_serializer(merchant).data, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop("partial", False)
        merchant = self.get_object()
        serializer = self.get_serializer(merchant, data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        changes = serializer.profile_changes()
        if changes:
            merchant = call_with_retry(update_merchant, merchant, changes, request.user)
        new_rep = serializer.validated_data.get("assigned_rep")
        if new_rep is not None:
            merchant = call_with_retry(reassign_rep, merchant, new_rep, request.user)

        merchant = self.get_queryset().get(pk=merchant.pk)
        return Response(self.get_serializer(merchant).data)

    def destroy(self, request, *args, **kwargs):
        merchant = self.get_object()
        call_with_retry(archive_merchant, merchant, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"])
    def pipeline(self, request, pk=None):
        """Pipeline of the merchant with the stages it may move to."""
        merchant = self.get_object()
        pipeline = get_object_or_404(
            Pipeline.objects.prefetch_related("stage_history__actor"),
            merchant=merchant,
        )
        data = PipelineSerializer(pipeline).data
        data["possible_stages"] = PipelineStateMachine().possible_stages(pipeline)
        return Response(data)

    @action(detail=True, methods=["post"])
    def transition(self, request, pk=None):
        """Move the merchant's pipeline to another stage."""
        merchant = self.get_object()
        serializer = TransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        machine = PipelineStateMachine()
        result = call_with_retry(
            machine.transition,
            merchant.pipeline,
            data["stage"],
            request.user,
            notes=data.get("notes", ""),
            lost_reason=data.get("lost_reason", ""),
            next_action_description=data.get("next_action_description"),
            next_action_date=data.get("next_action_date"),
        )
        out = PipelineSerializer(result.pipeline).data
        out["onboarding_id"] = str(result.onboarding.pk) if result.onboarding else None
        out["payout_id"] = str(result.payout.pk) if result.payout else None
        out["payout_created"] = result.payout_created
        return Response(out)

    @action(detail=True, methods=["post"], url_path="next-action")
    def next_action(self, request, pk=None):
        """Replace the next action without changing the stage."""
        merchant = self.get_object()
        serializer = NextActionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        pipeline = call_with_retry(
            PipelineStateMachine().update_next_action,
            merchant.pipeline,
            request.user,
            serializer.validated_data["description"],
            serializer.validated_data.get("date"),
        )
        return Response(PipelineSerializer(pipeline).data)

    @action(detail=True, methods=["get", "post"])
    def activities(self, request, pk=None):
        """List the merchant's activities or log a new one."""
        merchant = self.get_object()
        if request.method == "GET":
            qs = merchant.activities.select_related("actor", "merchant")
            page = self.paginate_queryset(qs)
            if page is not None:
                return self.get_paginated_response(ActivitySerializer(page, many=True).data)
            return Response(ActivitySerializer(qs, many=True).data)

        serializer = ActivitySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        activity = call_with_retry(log_activity, merchant, request.user, **serializer.validated_data)
        return Response(ActivitySerializer(activity).data, status=status.HTTP_201_CREATED)


# ---------------------------------------------------------------------------
# Activity ViewSet
# ---------------------------------------------------------------------------

class ActivityViewSet(viewsets.ReadOnlyModelViewSet):
    """Read-only activity log across merchants."""

    serializer_class = ActivitySerializer
    queryset = Activity.objects.select_related("merchant", "actor")
    filterset_fields = ["merchant", "actor", "type", "outcome"]
    search_fields = ["summary", "description", "merchant__name"]
    ordering_fields = ["created_at", "completed_at"]


# ---------------------------------------------------------------------------
# Onboarding ViewSet
# ---------------------------------------------------------------------------

class OnboardingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Onboarding of won merchants.

    - checklist: update checklist items and notes
    - mark_live: move a completed onboarding to LIVE
    - progress: completion statistics
    - pending_qa: onboardings waiting only for QA approval
    """

    serializer_class = OnboardingSerializer
    queryset = Onboarding.objects.select_related("merchant", "merchant__assigned_rep")
    filterset_fields = ["status", "merchant", "merchant__assigned_rep"]
    search_fields = ["merchant__name"]
    ordering_fields = ["created_at", "updated_at", "completion_percentage", "live_date"]

    @action(detail=True, methods=["patch", "post"])
    def checklist(self, request, pk=None):
        onboarding = self.get_object()
        serializer = ChecklistUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        onboarding = call_with_retry(
            OnboardingTracker().update_checklist,
            onboarding,
            serializer.validated_data,
            request.user,
        )
        return Response(self.get_serializer(onboarding).data)

    @action(detail=True, methods=["post"], url_path="mark-live")
    def mark_live(self, request, pk=None):
        onboarding = self.get_object()
        onboarding, payout = call_with_retry(OnboardingTracker().mark_live, onboarding, request.user)
        data = self.get_serializer(onboarding).data
        data["payout_id"] = str(payout.pk) if payout else None
        return Response(data)

    @action(detail=False, methods=["get"])
    def progress(self, request):
        return Response(analytics_services.onboarding_progress_stats(rep=_rep_param(request)))

    @action(detail=False, methods=["get"], url_path="pending-qa")
    def pending_qa(self, request):
        rows = analytics_services.pending_qa(rep=_rep_param(request))
        return Response([
            {**self.get_serializer(row["onboarding"]).data, "days_pending": row["days_pending"]}
            for row in rows
        ])


# ---------------------------------------------------------------------------
# Payout ViewSet
# ---------------------------------------------------------------------------

class PayoutViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Read-only payout ledger plus status changes.

    Entries are only written by the pipeline and onboarding services.
    ``?period=YYYY-MM`` narrows the list and the summary to one month.
    """

    serializer_class = PayoutLedgerEntrySerializer
    queryset = PayoutLedgerEntry.objects.select_related("merchant", "recipient")
    filterset_fields = ["recipient", "merchant", "reason", "status"]
    ordering_fields = ["created_at", "amount", "paid_at"]

    def get_queryset(self):
        qs = super().get_queryset()
        bounds = _period_param(self.request)
        if bounds:
            qs = qs.filter(created_at__gte=bounds[0], created_at__lt=bounds[1])
        return qs

    @action(detail=True, methods=["post"], url_path="mark-paid")
    def mark_paid(self, request, pk=None):
        entry = call_with_retry(PayoutLedger().mark_paid, self.get_object(), request.user)
        return Response(self.get_serializer(entry).data)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        entry = call_with_retry(PayoutLedger().cancel, self.get_object(), request.user)
        return Response(self.get_serializer(entry).data)

    @action(detail=False, methods=["get"])
    def summary(self, request):
        """Totals per status for ``?recipient=<id>``, the caller by default."""
        recipient = _rep_param(request) or request.user
        start, end = _period_param(request) or (None, None)
        totals = PayoutLedger().totals_for(recipient, start=start, end=end)
        return Response({
            "recipient": str(recipient.pk),
            "period": request.query_params.get("period") or None,
            "totals": totals,
        })


def _period_bounds(period: str):
    """First instants of ``period`` (YYYY-MM) and of the following month."""
    year, month = int(period[:4]), int(period[5:7])
    tz = timezone.get_current_timezone()
    start = datetime(year, month, 1, tzinfo=tz)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=tz)
    else:
        end = datetime(year, month + 1, 1, tzinfo=tz)
    return start, end


def _period_param(request):
    period = request.query_params.get("period")
    if not period:
        return None
    if not re.fullmatch(r"\d{4}-(0[1-9]|1[0-2])", period):
        raise ValidationError({"period": "Expected YYYY-MM."})
    return _period_bounds(period)


def _rep_param(request, name="rep"):
    """Resolve ``?rep=<uuid>`` (or ``?recipient=``) to a user, or None."""
    value = request.query_params.get(name) or request.query_params.get("recipient")
    if not value:
        return None
    try:
        return User.objects.get(pk=value)
    except (User.DoesNotExist, ValueError, DjangoValidationError) as exc:
        raise ValidationError({name: "Unknown user."}) from exc
