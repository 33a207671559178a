"""REST API endpoints for CRM reporting."""
from rest_framework.response import Response
from rest_framework.views import APIView

from analytics.services import (
    merchant_overview,
    overdue_pipelines,
    onboarding_progress_stats,
    pipeline_conversion_stats,
    rep_performance,
)
from api.v1.views import _rep_param


class PipelineConversionAPIView(APIView):
    """Stage distribution and conversion rates, optionally for ``?rep=<id>``."""

    def get(self, request):
        return Response(pipeline_conversion_stats(rep=_rep_param(request)))


class OverduePipelinesAPIView(APIView):
    """Open pipelines whose next action date has passed, oldest first."""

    def get(self, request):
        rows = overdue_pipelines(rep=_rep_param(request))
        return Response([
            {
                "pipeline_id": str(row["pipeline"].pk),
                "merchant_id": str(row["pipeline"].merchant_id),
                "merchant_name": row["pipeline"].merchant.name,
                "assigned_rep": str(row["pipeline"].merchant.assigned_rep_id),
                "current_stage": row["pipeline"].current_stage,
                "next_action_description": row["pipeline"].next_action_description,
                "next_action_date": row["pipeline"].next_action_date,
                "days_past_due": row["days_past_due"],
            }
            for row in rows
        ])


class OnboardingProgressAPIView(APIView):
    def get(self, request):
        return Response(onboarding_progress_stats(rep=_rep_param(request)))


class RepPerformanceAPIView(APIView):
    def get(self, request):
        return Response(rep_performance())


class MerchantOverviewAPIView(APIView):
    def get(self, request):
        return Response(merchant_overview(rep=_rep_param(request)))
