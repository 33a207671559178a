"""Admin registrations for the payout ledger."""
from django.contrib import admin

from payouts.models import PayoutLedgerEntry


@admin.register(PayoutLedgerEntry)
class PayoutLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("merchant", "recipient", "reason", "amount", "currency", "status", "created_at")
    list_filter = ("reason", "status", "currency")
    search_fields = ("merchant__name", "recipient__email", "description")
    readonly_fields = ("merchant", "recipient", "reason", "amount", "currency", "created_by", "paid_at")
