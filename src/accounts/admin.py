from decimal import Decimal

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count, Q, Sum

from payouts.models import PayoutLedgerEntry
from pipeline.models import Pipeline

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Users with their merchant portfolio and paid bonuses at a glance."""

    list_display = (
        "email",
        "get_full_name",
        "role",
        "merchant_count",
        "won_count",
        "paid_bonuses",
        "is_active",
    )
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("email", "first_name", "last_name", "phone")
    ordering = ("last_name", "first_name")
    readonly_fields = ("date_joined", "last_login")
    actions = ("deactivate_users",)

    fieldsets = (
        (None, {"fields": ("email", "password")}),
        ("Profile", {"fields": ("first_name", "last_name", "phone")}),
        ("Access", {"fields": ("role", "is_active", "is_staff", "is_superuser", "groups")}),
        ("Activity", {"fields": ("last_login", "date_joined")}),
    )
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("email", "first_name", "last_name", "role", "password1", "password2"),
            },
        ),
    )

    def get_queryset(self, request):
        active = Q(assigned_merchants__is_archived=False)
        return super().get_queryset(request).annotate(
            _merchants=Count("assigned_merchants", filter=active, distinct=True),
            _won=Count(
                "assigned_merchants",
                filter=active & Q(assigned_merchants__pipeline__current_stage=Pipeline.Stage.WON),
                distinct=True,
            ),
        )

    @admin.display(description="Merchants", ordering="_merchants")
    def merchant_count(self, obj):
        return obj._merchants

    @admin.display(description="Won", ordering="_won")
    def won_count(self, obj):
        return obj._won

    @admin.display(description="Paid bonuses")
    def paid_bonuses(self, obj):
        total = obj.payouts.filter(status=PayoutLedgerEntry.Status.PAID).aggregate(total=Sum("amount"))["total"]
        return total or Decimal("0.00")

    @admin.action(description="Deactivate selected users")
    def deactivate_users(self, request, queryset):
        # Merchants stay assigned; reassign them separately.
        updated = queryset.update(is_active=False)
        self.message_user(request, f"{updated} user(s) deactivated.")
