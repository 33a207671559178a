"""Admin registrations for the sales pipeline."""
from django.contrib import admin

from pipeline.models import Pipeline, PipelineStageHistory


class PipelineStageHistoryInline(admin.TabularInline):
    model = PipelineStageHistory
    extra = 0
    fields = ("from_stage", "to_stage", "actor", "notes", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Pipeline)
class PipelineAdmin(admin.ModelAdmin):
    list_display = ("merchant", "current_stage", "next_action_date", "last_updated_by", "updated_at")
    list_filter = ("current_stage",)
    search_fields = ("merchant__name",)
    # Stage changes must go through the state machine.
    readonly_fields = ("current_stage", "lost_reason")
    inlines = (PipelineStageHistoryInline,)
