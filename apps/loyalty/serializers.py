from rest_framework import serializers
from .models import (
    ActivityLog,
    BalanceAdjustment,
    LoyaltyTransaction,
    Redemption,
    Reward,
)
from apps.accounts.models import User
from apps.loyalty.services import ADJUST_ADD, ADJUST_SUBTRACT


class UserMinimalSerializer(serializers.ModelSerializer):
    """Minimal user info for nested serialization."""

    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'display_name']
        read_only_fields = fields

    def get_display_name(self, obj):
        return obj.get_display_name()


class LoyaltyTransactionSerializer(serializers.ModelSerializer):
    """Read-only view of an earn event."""

    customer = UserMinimalSerializer(read_only=True)
    recorded_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = LoyaltyTransaction
        fields = [
            'id',
            'customer',
            'amount',
            'points_earned',
            'stamps_earned',
            'transaction_date',
            'status',
            'recorded_by',
            'cancelled_at',
            'created_at',
        ]
        read_only_fields = fields


class TransactionCreateSerializer(serializers.Serializer):
    """Input for recording a purchase. Positivity is checked by the ledger."""

    customer = serializers.UUIDField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)


class RewardSerializer(serializers.ModelSerializer):
    """Reward catalog entry."""

    class Meta:
        model = Reward
        fields = [
            'id',
            'title',
            'description',
            'required_points',
            'required_stamps',
            'is_active',
            'created_at',
            'updated_at',
        ]
        read_only_fields = ['id', 'created_at', 'updated_at']

    def get_restaurant(self):
        if self.instance is not None:
            return self.instance.restaurant
        return self.context['request'].user.restaurant

    def validate(self, attrs):
        """Require exactly one cost, in the restaurant's loyalty unit."""
        points = attrs.get('required_points', getattr(self.instance, 'required_points', None))
        stamps = attrs.get('required_stamps', getattr(self.instance, 'required_stamps', None))
        if points and stamps:
            raise serializers.ValidationError(
                'Set either required_points or required_stamps, not both.'
            )

        restaurant = self.get_restaurant()
        if restaurant.is_stamp_mode:
            expected, other = 'required_stamps', 'required_points'
        else:
            expected, other = 'required_points', 'required_stamps'
        costs = {'required_points': points, 'required_stamps': stamps}
        if costs[other]:
            raise serializers.ValidationError({
                other: f'This restaurant runs in {restaurant.loyalty_mode} mode; set {expected} instead.'
            })
        if not costs[expected]:
            raise serializers.ValidationError({expected: 'This field is required.'})
        return attrs


class RedemptionSerializer(serializers.ModelSerializer):
    """Read-only view of a spend event."""

    customer = UserMinimalSerializer(read_only=True)
    verified_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Redemption
        fields = [
            'id',
            'customer',
            'reward',
            'reward_title',
            'points_used',
            'stamps_used',
            'redemption_code',
            'status',
            'verified_at',
            'verified_by',
            'cancelled_at',
            'created_at',
        ]
        read_only_fields = fields


class RedemptionCreateSerializer(serializers.Serializer):
    """
    Input for redeeming a reward.

    ``customer`` is honored only for restaurant administrators; customers
    always redeem for themselves.
    """

    reward = serializers.UUIDField()
    customer = serializers.UUIDField(required=False)


class RedemptionCodeSerializer(serializers.Serializer):
    """Redemption code entered by staff or the customer."""

    redemption_code = serializers.CharField(max_length=32)


class BalanceSerializer(serializers.Serializer):
    """Committed balance of a customer."""

    points = serializers.IntegerField(read_only=True)
    stamps = serializers.IntegerField(read_only=True)
    loyalty_mode = serializers.CharField(read_only=True)


class AdjustBalanceSerializer(serializers.Serializer):
    """Manual adjustment input."""

    amount = serializers.IntegerField(min_value=1)
    action = serializers.ChoiceField(choices=[ADJUST_ADD, ADJUST_SUBTRACT])
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class BalanceAdjustmentSerializer(serializers.ModelSerializer):
    """Stored manual adjustment."""

    performed_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = BalanceAdjustment
        fields = [
            'id',
            'customer',
            'points_delta',
            'stamps_delta',
            'note',
            'performed_by',
            'created_at',
        ]
        read_only_fields = fields


class ActivityLogSerializer(serializers.ModelSerializer):
    """Audit trail entry."""

    performed_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = ActivityLog
        fields = [
            'id',
            'action_type',
            'target_type',
            'target_id',
            'details',
            'performed_by',
            'created_at',
        ]
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    """Customer profile with the committed balance."""

    points = serializers.IntegerField(source='points_balance', read_only=True)
    stamps = serializers.IntegerField(source='stamps_balance', read_only=True)

    class Meta:
        model = User
        fields = [
            'id',
            'email',
            'full_name',
            'phone',
            'is_active',
            'points',
            'stamps',
            'created_at',
        ]
        read_only_fields = fields


class CustomerWriteSerializer(serializers.ModelSerializer):
    """Input for creating or editing a customer profile."""

    class Meta:
        model = User
        fields = ['email', 'full_name', 'phone', 'is_active']
        extra_kwargs = {
            'is_active': {'required': False},
        }

    def validate_email(self, value):
        return User.objects.normalize_email(value)


class DailyActiveCustomersSerializer(serializers.Serializer):
    day = serializers.DateField()
    customers = serializers.IntegerField()


class TopRewardSerializer(serializers.Serializer):
    title = serializers.CharField()
    count = serializers.IntegerField()


class LoyaltyStatsSerializer(serializers.Serializer):
    """Restaurant dashboard numbers."""

    total_customers = serializers.IntegerField()
    total_transactions = serializers.IntegerField()
    total_redemptions = serializers.IntegerField()
    units_issued = serializers.IntegerField()
    units_redeemed = serializers.IntegerField()
    units_outstanding = serializers.IntegerField()
    unit = serializers.CharField()
    daily_active_customers = DailyActiveCustomersSerializer(many=True)
    top_rewards = TopRewardSerializer(many=True)


class StatsQuerySerializer(serializers.Serializer):
    days = serializers.IntegerField(min_value=1, max_value=365, default=7)
