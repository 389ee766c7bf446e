# ==========================================
# apps/loyalty/admin.py
# ==========================================

from django.contrib import admin, messages
from django.utils.html import format_html
from apps.loyalty.models import (
    ActivityLog,
    BalanceAdjustment,
    CustomerBalance,
    LoyaltyTransaction,
    Redemption,
    RedemptionStatus,
    Reward,
    TransactionStatus,
)
from apps.loyalty.services.reconciliation import find_discrepancy


class LedgerReadOnlyAdmin(admin.ModelAdmin):
    """Ledger rows are written by the ledger engine only."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CustomerBalance)
class CustomerBalanceAdmin(LedgerReadOnlyAdmin):
    """Admin interface for customer balances."""

    list_display = ['customer', 'restaurant', 'points', 'stamps', 'updated_at']
    list_filter = ['restaurant']
    search_fields = ['customer__email', 'customer__full_name']
    ordering = ['-updated_at']

    actions = ['check_against_ledger']

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('customer', 'restaurant')

    def check_against_ledger(self, request, queryset):
        """Compare selected balances with their ledger history."""
        mismatches = 0
        for balance in queryset:
            discrepancy = find_discrepancy(balance)
            if discrepancy is not None:
                mismatches += 1
                stored, expected = discrepancy
                self.message_user(
                    request,
                    f"{balance.customer}: stored {stored}, ledger {expected}",
                    level=messages.ERROR
                )
        if not mismatches:
            self.message_user(request, f"All {queryset.count()} balances match the ledger")
    check_against_ledger.short_description = "Check balances against ledger"


@admin.register(LoyaltyTransaction)
class LoyaltyTransactionAdmin(LedgerReadOnlyAdmin):
    """Admin interface for earn events."""

    list_display = [
        'customer',
        'restaurant',
        'amount',
        'points_earned',
        'stamps_earned',
        'transaction_date',
        'status_badge',
        'created_at',
    ]
    list_filter = ['status', 'restaurant', 'transaction_date']
    search_fields = ['customer__email', 'customer__full_name']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('customer', 'restaurant')

    def status_badge(self, obj):
        """Display status as colored badge."""
        color = '#28a745' if obj.status == TransactionStatus.ACTIVE else '#6c757d'
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; '
            'border-radius: 3px; font-size: 11px; font-weight: bold;">{}</span>',
            color,
            obj.get_status_display().upper()
        )
    status_badge.short_description = 'Status'


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    """Admin interface for the reward catalog."""

    list_display = ['title', 'restaurant', 'required_points', 'required_stamps', 'is_active']
    list_filter = ['is_active', 'restaurant']
    search_fields = ['title', 'description']
    readonly_fields = ['created_at', 'updated_at']

    actions = ['deactivate_rewards']

    def deactivate_rewards(self, request, queryset):
        """Hide selected rewards from customers."""
        updated = queryset.update(is_active=False)
        self.message_user(request, f"Deactivated {updated} rewards")
    deactivate_rewards.short_description = "Deactivate selected rewards"


@admin.register(Redemption)
class RedemptionAdmin(LedgerReadOnlyAdmin):
    """Admin interface for spend events."""

    list_display = [
        'redemption_code',
        'customer',
        'reward_title',
        'points_used',
        'stamps_used',
        'status_badge',
        'created_at',
    ]
    list_filter = ['status', 'restaurant']
    search_fields = ['redemption_code', 'customer__email', 'reward_title']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    STATUS_COLORS = {
        RedemptionStatus.PENDING: '#ffc107',
        RedemptionStatus.VERIFIED: '#28a745',
        RedemptionStatus.CANCELLED: '#6c757d',
    }

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        return qs.select_related('customer', 'restaurant')

    def status_badge(self, obj):
        """Display status as colored badge."""
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 10px; '
            'border-radius: 3px; font-size: 11px; font-weight: bold;">{}</span>',
            self.STATUS_COLORS.get(obj.status, '#6c757d'),
            obj.get_status_display().upper()
        )
    status_badge.short_description = 'Status'


@admin.register(BalanceAdjustment)
class BalanceAdjustmentAdmin(LedgerReadOnlyAdmin):
    list_display = ['customer', 'points_delta', 'stamps_delta', 'note', 'performed_by', 'created_at']
    list_filter = ['restaurant']
    search_fields = ['customer__email', 'note']
    ordering = ['-created_at']


@admin.register(ActivityLog)
class ActivityLogAdmin(LedgerReadOnlyAdmin):
    list_display = ['action_type', 'target_type', 'target_id', 'performed_by', 'restaurant', 'created_at']
    list_filter = ['action_type', 'restaurant']
    search_fields = ['target_id', 'performed_by__email']
    date_hierarchy = 'created_at'
    ordering = ['-created_at']
