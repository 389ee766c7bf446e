"""
Redemption ledger: spend events.

State machine::

    pending --verify--> verified   (terminal)
    pending --cancel--> cancelled  (terminal, hold released)

Creating a redemption debits the balance immediately (a hold), so a
pending redemption cannot be double-spent. Verification only confirms
the hold; cancellation credits it back.

All mutating functions expect to run inside the ledger engine's atomic
block, with the customer's balance row already locked.
"""

import logging
import secrets
import string

from django.utils import timezone

from apps.loyalty.models import Redemption, RedemptionStatus

from . import balance_store
from .exceptions import (
    ContendedError,
    DailyLimitReachedError,
    InsufficientBalanceError,
    InvalidRewardError,
    InvalidStateError,
)

logger = logging.getLogger(__name__)

BASE36_ALPHABET = string.digits + string.ascii_uppercase


def _to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return ''.join(reversed(digits))


def generate_redemption_code(now=None):
    """
    Generate a staff-facing redemption code.

    Format: ``<base36 epoch milliseconds>-<6 random base36 chars>``,
    upper-cased, e.g. ``'LZ3K9Q2A-X7Q2KD'``.
    """
    now = now or timezone.now()
    timestamp = _to_base36(int(now.timestamp() * 1000))
    suffix = ''.join(secrets.choice(BASE36_ALPHABET) for _ in range(6))
    return f"{timestamp}-{suffix}"


def allocate_redemption_code(*, restaurant, code_generator, now, max_attempts):
    """
    Return a code not yet used at the restaurant.

    Retries on collision instead of failing the caller.

    Raises:
        ContendedError: If every attempt collided. Retryable.
    """
    for attempt in range(1, max_attempts + 1):
        code = code_generator(now)
        taken = Redemption.objects.filter(
            restaurant=restaurant,
            redemption_code=code,
        ).exists()
        if not taken:
            return code
        logger.warning(
            "Redemption code collision at restaurant %s (attempt %d/%d)",
            restaurant.pk, attempt, max_attempts,
        )
    raise ContendedError(
        "Could not allocate a unique redemption code",
        restaurant_id=str(restaurant.pk),
    )


def required_units(reward, restaurant):
    """
    Return (points, stamps) a reward costs at the restaurant.

    Raises:
        InvalidRewardError: If the reward belongs to another restaurant,
            is inactive, or has no cost in the restaurant's mode.
    """
    if reward.restaurant_id != restaurant.pk or not reward.is_active:
        raise InvalidRewardError(reward_id=str(reward.pk))

    cost = reward.cost_for(restaurant)
    if not cost:
        raise InvalidRewardError(
            f"Reward has no {restaurant.unit_name} cost",
            reward_id=str(reward.pk),
        )
    if restaurant.is_stamp_mode:
        return 0, cost
    return cost, 0


def count_redemptions_today(*, customer, restaurant, today):
    """Redemptions created by the customer on ``today`` that still hold or spent units."""
    return (
        Redemption.objects
        .filter(customer=customer, restaurant=restaurant, created_at__date=today)
        .exclude(status=RedemptionStatus.CANCELLED)
        .count()
    )


def create_redemption(*, balance, reward, today_count, now, code_generator, max_code_attempts=10):
    """
    Create a pending redemption and place the hold.

    Args:
        balance (CustomerBalance): Locked balance of the customer.
        reward (Reward): Reward being redeemed.
        today_count (int): Redemptions the customer already made today.
        now (datetime): Creation timestamp.
        code_generator (callable): ``now -> str`` code factory.
        max_code_attempts (int): Collision retries for the code.

    Returns:
        Redemption: The new pending redemption.

    Raises:
        InvalidRewardError: If the reward cannot be redeemed here.
        DailyLimitReachedError: If ``today_count`` reached the limit.
        InsufficientBalanceError: If the balance does not cover the cost.
        ContendedError: If no unique code could be allocated.
    """
    restaurant = balance.restaurant
    points, stamps = required_units(reward, restaurant)

    limit = restaurant.max_redemptions_per_day
    if limit is not None and today_count >= limit:
        raise DailyLimitReachedError(
            customer_id=str(balance.customer_id),
            limit=limit,
        )

    if balance.points < points or balance.stamps < stamps:
        raise InsufficientBalanceError(
            f"Insufficient {restaurant.unit_name}",
            customer_id=str(balance.customer_id),
            required=points or stamps,
            available=balance.points if points else balance.stamps,
        )

    code = allocate_redemption_code(
        restaurant=restaurant,
        code_generator=code_generator,
        now=now,
        max_attempts=max_code_attempts,
    )
    redemption = Redemption.objects.create(
        restaurant=restaurant,
        customer=balance.customer,
        reward=reward,
        reward_title=reward.title,
        points_used=points,
        stamps_used=stamps,
        redemption_code=code,
        status=RedemptionStatus.PENDING,
        created_at=now,
    )
    balance_store.apply_delta(balance, points=-points, stamps=-stamps)
    return redemption


def _require_pending(redemption, action):
    if redemption.status != RedemptionStatus.PENDING:
        raise InvalidStateError(
            f"Cannot {action} a {redemption.status} redemption",
            redemption_code=redemption.redemption_code,
            status=redemption.status,
        )


def verify_redemption(*, redemption, verified_by, now):
    """
    Confirm a pending redemption was honored. The hold becomes permanent.

    Raises:
        InvalidStateError: If the redemption is not pending.
    """
    _require_pending(redemption, 'verify')
    redemption.status = RedemptionStatus.VERIFIED
    redemption.verified_at = now
    redemption.verified_by = verified_by
    redemption.save(update_fields=['status', 'verified_at', 'verified_by'])
    return redemption


def cancel_redemption(*, redemption, balance, now):
    """
    Cancel a pending redemption and release its hold.

    Raises:
        InvalidStateError: If the redemption is not pending.
    """
    _require_pending(redemption, 'cancel')
    balance_store.apply_delta(
        balance,
        points=redemption.points_used,
        stamps=redemption.stamps_used,
    )
    redemption.status = RedemptionStatus.CANCELLED
    redemption.cancelled_at = now
    redemption.save(update_fields=['status', 'cancelled_at'])
    return redemption
