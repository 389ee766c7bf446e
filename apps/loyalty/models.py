from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class TransactionStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    CANCELLED = 'cancelled', 'Cancelled'


class RedemptionStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    VERIFIED = 'verified', 'Verified'
    CANCELLED = 'cancelled', 'Cancelled'


class ActivityType(models.TextChoices):
    TRANSACTION_RECORDED = 'transaction_recorded', 'Transaction recorded'
    TRANSACTION_CANCELLED = 'transaction_cancelled', 'Transaction cancelled'
    TRANSACTION_DELETED = 'transaction_deleted', 'Transaction deleted'
    REDEMPTION_CREATED = 'redemption_created', 'Redemption created'
    REDEMPTION_VERIFIED = 'redemption_verified', 'Redemption verified'
    REDEMPTION_CANCELLED = 'redemption_cancelled', 'Redemption cancelled'
    POINTS_ADJUSTMENT = 'points_adjustment', 'Points adjustment'
    BULK_DELETE = 'bulk_delete', 'Bulk delete'
    CUSTOMER_CREATED = 'customer_created', 'Customer created'
    CUSTOMER_UPDATED = 'customer_updated', 'Customer updated'
    CUSTOMER_DELETED = 'customer_deleted', 'Customer deleted'


class CustomerBalance(models.Model):
    """
    Spendable points/stamps of one customer at one restaurant.

    Written only by apps.loyalty.services.ledger_engine. The stored values
    always equal the sum of the customer's committed ledger effects
    (see apps.loyalty.services.reconciliation).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    customer = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='loyalty_balances'
    )
    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='balances'
    )

    points = models.PositiveIntegerField(default=0)
    stamps = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'customer_balances'
        constraints = [
            models.UniqueConstraint(
                fields=['customer', 'restaurant'],
                name='unique_customer_balance'
            ),
            models.CheckConstraint(
                condition=models.Q(points__gte=0) & models.Q(stamps__gte=0),
                name='customer_balance_non_negative'
            ),
        ]

    def __str__(self):
        return f"{self.customer} - {self.points} points / {self.stamps} stamps"

    def as_dict(self):
        return {'points': self.points, 'stamps': self.stamps}


class LoyaltyTransaction(models.Model):
    """Earn event: a purchase that credited points or stamps."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='transactions'
    )
    customer = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='loyalty_transactions'
    )

    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    points_earned = models.PositiveIntegerField(default=0)
    stamps_earned = models.PositiveIntegerField(default=0)

    transaction_date = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.ACTIVE
    )

    recorded_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recorded_transactions'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='cancelled_transactions'
    )

    created_at = models.DateTimeField()

    class Meta:
        db_table = 'transactions'
        indexes = [
            models.Index(fields=['customer', 'transaction_date']),
            models.Index(fields=['restaurant', 'created_at']),
            models.Index(fields=['restaurant', 'status']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.customer} +{self.units_earned} ({self.amount}, {self.status})"

    @property
    def units_earned(self):
        return self.points_earned or self.stamps_earned

    @property
    def is_active(self):
        return self.status == TransactionStatus.ACTIVE


class Reward(models.Model):
    """Reward catalog entry. Exactly one of required_points/required_stamps is set."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='rewards'
    )
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)

    required_points = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)]
    )
    required_stamps = models.PositiveIntegerField(
        null=True,
        blank=True,
        validators=[MinValueValidator(1)]
    )
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rewards'
        indexes = [
            models.Index(fields=['restaurant', 'is_active']),
        ]
        ordering = ['required_points', 'required_stamps', 'title']

    def __str__(self):
        return self.title

    def cost_for(self, restaurant):
        """Return the cost in the restaurant's unit, or None if unset."""
        return self.required_stamps if restaurant.is_stamp_mode else self.required_points


class Redemption(models.Model):
    """
    Spend event: points/stamps exchanged for a reward.

    The balance is debited when the redemption is created (hold). Staff
    either verify it (the hold becomes permanent) or cancel it (the hold
    is released).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='redemptions'
    )
    customer = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='redemptions'
    )
    reward = models.ForeignKey(
        Reward,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='redemptions'
    )

    # Snapshot, decoupled from later reward edits
    reward_title = models.CharField(max_length=200)
    points_used = models.PositiveIntegerField(default=0)
    stamps_used = models.PositiveIntegerField(default=0)

    # Staff-facing lookup token
    redemption_code = models.CharField(max_length=32, db_index=True, editable=False)

    status = models.CharField(
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='verified_redemptions'
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField()

    class Meta:
        db_table = 'redemptions'
        constraints = [
            models.UniqueConstraint(
                fields=['restaurant', 'redemption_code'],
                name='unique_redemption_code_per_restaurant'
            ),
        ]
        indexes = [
            models.Index(fields=['customer', 'created_at']),
            models.Index(fields=['restaurant', 'status']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.redemption_code} - {self.reward_title} ({self.status})"

    @property
    def is_pending(self):
        return self.status == RedemptionStatus.PENDING


class BalanceAdjustment(models.Model):
    """Manual credit or debit applied by a restaurant administrator."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='balance_adjustments'
    )
    customer = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='balance_adjustments'
    )

    # Signed deltas
    points_delta = models.IntegerField(default=0)
    stamps_delta = models.IntegerField(default=0)
    note = models.CharField(max_length=500, blank=True)

    performed_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='performed_adjustments'
    )
    created_at = models.DateTimeField()

    class Meta:
        db_table = 'balance_adjustments'
        indexes = [
            models.Index(fields=['customer', 'created_at']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.customer} {self.points_delta:+d} points / {self.stamps_delta:+d} stamps"


class ActivityLog(models.Model):
    """Audit record of a committed ledger mutation."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    restaurant = models.ForeignKey(
        'restaurants.Restaurant',
        on_delete=models.CASCADE,
        related_name='activity_logs'
    )
    performed_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='activity_logs'
    )

    action_type = models.CharField(max_length=40, choices=ActivityType.choices)
    target_type = models.CharField(max_length=40, blank=True)
    target_id = models.CharField(max_length=64, blank=True)
    details = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'activity_logs'
        indexes = [
            models.Index(fields=['restaurant', 'created_at']),
            models.Index(fields=['action_type']),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.action_type} {self.target_type}:{self.target_id}"
