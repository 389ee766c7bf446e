"""
Ledger reconciliation.

Recomputes a balance from its ledger history::

    points = sum(active transactions' points_earned)
           - sum(pending + verified redemptions' points_used)
           + sum(adjustments' points_delta)

and likewise for stamps. Pending redemptions count because their hold
is already debited. A mismatch is logged with full context and raised;
the stored balance is never corrected here.
"""

import logging

from django.db.models import Sum

from apps.loyalty.models import (
    BalanceAdjustment,
    CustomerBalance,
    LoyaltyTransaction,
    Redemption,
    RedemptionStatus,
    TransactionStatus,
)

from .exceptions import ConsistencyViolationError

logger = logging.getLogger(__name__)


def ledger_totals(*, customer_id, restaurant_id):
    """Return ``{'points', 'stamps'}`` derived from the ledger alone."""
    earned = LoyaltyTransaction.objects.filter(
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        status=TransactionStatus.ACTIVE,
    ).aggregate(points=Sum('points_earned'), stamps=Sum('stamps_earned'))

    spent = Redemption.objects.filter(
        customer_id=customer_id,
        restaurant_id=restaurant_id,
        status__in=[RedemptionStatus.PENDING, RedemptionStatus.VERIFIED],
    ).aggregate(points=Sum('points_used'), stamps=Sum('stamps_used'))

    adjusted = BalanceAdjustment.objects.filter(
        customer_id=customer_id,
        restaurant_id=restaurant_id,
    ).aggregate(points=Sum('points_delta'), stamps=Sum('stamps_delta'))

    return {
        'points': (earned['points'] or 0) - (spent['points'] or 0) + (adjusted['points'] or 0),
        'stamps': (earned['stamps'] or 0) - (spent['stamps'] or 0) + (adjusted['stamps'] or 0),
    }


def find_discrepancy(balance):
    """Return ``(stored, expected)`` if the balance disagrees with its ledger, else None."""
    expected = ledger_totals(
        customer_id=balance.customer_id,
        restaurant_id=balance.restaurant_id,
    )
    stored = balance.as_dict()
    if stored != expected:
        return stored, expected
    return None


def assert_consistent(balance, *, operation=None):
    """
    Raise if ``balance`` disagrees with the ledger.

    Raises:
        ConsistencyViolationError: On any mismatch. The stored and
            computed totals are logged at ERROR.
    """
    discrepancy = find_discrepancy(balance)
    if discrepancy is None:
        return

    stored, expected = discrepancy
    logger.error(
        "Ledger consistency violation: customer=%s restaurant=%s operation=%s "
        "stored=%s expected=%s",
        balance.customer_id, balance.restaurant_id, operation, stored, expected,
    )
    raise ConsistencyViolationError(
        customer_id=str(balance.customer_id),
        restaurant_id=str(balance.restaurant_id),
        stored=stored,
        expected=expected,
    )


def iter_discrepancies(restaurant=None):
    """Yield ``(balance, stored, expected)`` for every mismatching balance."""
    balances = CustomerBalance.objects.select_related('customer', 'restaurant')
    if restaurant is not None:
        balances = balances.filter(restaurant=restaurant)

    for balance in balances.iterator():
        discrepancy = find_discrepancy(balance)
        if discrepancy is not None:
            yield (balance, *discrepancy)
