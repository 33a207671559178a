"""Admin registrations for merchants."""
from django.contrib import admin

from merchants.models import Activity, Merchant


class ActivityInline(admin.TabularInline):
    model = Activity
    extra = 0
    fields = ("type", "outcome", "summary", "actor", "completed_at")
    readonly_fields = fields
    can_delete = False


@admin.register(Merchant)
class MerchantAdmin(admin.ModelAdmin):
    list_display = ("name", "category", "assigned_rep", "contact_phone", "is_archived", "created_at")
    list_filter = ("category", "is_archived")
    search_fields = ("name", "contact_person_name", "contact_phone", "contact_email")
    raw_id_fields = ("assigned_rep", "created_by")
    inlines = (ActivityInline,)


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin):
    list_display = ("merchant", "type", "outcome", "actor", "duration_minutes", "completed_at")
    list_filter = ("type", "outcome")
    search_fields = ("summary", "merchant__name")
