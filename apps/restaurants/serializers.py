from rest_framework import serializers
from .models import Restaurant


class RestaurantSerializer(serializers.ModelSerializer):
    """Restaurant loyalty configuration."""

    unit_name = serializers.CharField(read_only=True)

    class Meta:
        model = Restaurant
        fields = [
            'id',
            'name',
            'loyalty_mode',
            'unit_name',
            'points_ratio_amount',
            'points_ratio_points',
            'stamp_ratio_amount',
            'stamp_ratio_stamps',
            'allow_multiple_stamps_per_day',
            'max_redemptions_per_day',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'unit_name', 'created_at', 'updated_at']

    def validate_points_ratio_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Ratio amount must be greater than zero.')
        return value

    def validate_stamp_ratio_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Ratio amount must be greater than zero.')
        return value
