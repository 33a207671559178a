"""Admin registrations for onboarding."""
from django.contrib import admin

from onboarding.models import Onboarding


@admin.register(Onboarding)
class OnboardingAdmin(admin.ModelAdmin):
    list_display = ("merchant", "status", "completion_percentage", "live_date", "updated_at")
    list_filter = ("status", "qa_approved")
    search_fields = ("merchant__name",)
    readonly_fields = ("status", "completion_percentage", "live_date")
