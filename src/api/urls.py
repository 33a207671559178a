"""Main API URL router for /api/v1/."""
from django.urls import include, path
from rest_framework.routers import DefaultRouter

from api.v1 import analytics_views as analytics_api_views
from api.v1 import views as v1_views

router = DefaultRouter()
router.register(r"merchants", v1_views.MerchantViewSet, basename="merchant")
router.register(r"onboarding", v1_views.OnboardingViewSet, basename="onboarding")
router.register(r"payouts", v1_views.PayoutViewSet, basename="payout")
router.register(r"activities", v1_views.ActivityViewSet, basename="activity")


app_name = "api"
urlpatterns = [
    path("", include(router.urls)),
    # Analytics
    path("analytics/pipeline/", analytics_api_views.PipelineConversionAPIView.as_view(), name="analytics-pipeline"),
    path("analytics/overdue/", analytics_api_views.OverduePipelinesAPIView.as_view(), name="analytics-overdue"),
    path("analytics/onboarding/", analytics_api_views.OnboardingProgressAPIView.as_view(), name="analytics-onboarding"),
    path("analytics/reps/", analytics_api_views.RepPerformanceAPIView.as_view(), name="analytics-reps"),
    path("analytics/overview/", analytics_api_views.MerchantOverviewAPIView.as_view(), name="analytics-overview"),
]
