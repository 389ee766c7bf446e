# ==========================================
# apps/restaurants/admin.py
# ==========================================

from django.contrib import admin
from .models import Restaurant


@admin.register(Restaurant)
class RestaurantAdmin(admin.ModelAdmin):
    """Admin interface for restaurants and their loyalty configuration."""

    list_display = [
        'name',
        'loyalty_mode',
        'get_ratio_display',
        'allow_multiple_stamps_per_day',
        'max_redemptions_per_day',
        'created_at',
    ]

    list_filter = [
        'loyalty_mode',
        'allow_multiple_stamps_per_day',
    ]

    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at']

    fieldsets = (
        ('Restaurant', {
            'fields': ('name', 'loyalty_mode')
        }),
        ('Points Ratio', {
            'fields': ('points_ratio_amount', 'points_ratio_points'),
        }),
        ('Stamp Ratio', {
            'fields': ('stamp_ratio_amount', 'stamp_ratio_stamps', 'allow_multiple_stamps_per_day'),
        }),
        ('Redemption Limits', {
            'fields': ('max_redemptions_per_day',),
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def get_ratio_display(self, obj):
        """Display the active earn ratio."""
        amount, units = obj.get_ratio()
        return f"{amount} -> {units} {obj.unit_name}"
    get_ratio_display.short_description = 'Ratio'
