from django.db import models
from django.core.validators import MinValueValidator
from decimal import Decimal
import uuid


class LoyaltyMode(models.TextChoices):
    POINTS = 'points', 'Points'
    STAMPS = 'stamps', 'Stamps'


class Restaurant(models.Model):
    """Restaurant and its loyalty program configuration."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)

    loyalty_mode = models.CharField(
        max_length=10,
        choices=LoyaltyMode.choices,
        default=LoyaltyMode.POINTS
    )

    # Earn ratios: every `*_ratio_amount` spent earns `*_ratio_points/stamps`
    points_ratio_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('10000.00'),
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    points_ratio_points = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )
    stamp_ratio_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal('50000.00'),
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    stamp_ratio_stamps = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)]
    )

    allow_multiple_stamps_per_day = models.BooleanField(default=False)
    # None means unlimited
    max_redemptions_per_day = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'restaurants'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.loyalty_mode})"

    @property
    def is_stamp_mode(self):
        return self.loyalty_mode == LoyaltyMode.STAMPS

    @property
    def unit_name(self):
        return 'stamps' if self.is_stamp_mode else 'points'

    def get_ratio(self):
        """Return (amount, units) for the active loyalty mode."""
        if self.is_stamp_mode:
            return self.stamp_ratio_amount, self.stamp_ratio_stamps
        return self.points_ratio_amount, self.points_ratio_points
