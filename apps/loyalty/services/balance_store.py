"""
Balance store.

Reads and writes CustomerBalance rows. Writers must already be inside
``transaction.atomic()`` and hold the customer's lock; only the ledger
modules call ``lock_balance`` and ``apply_delta``.
"""

from django.db import OperationalError

from apps.loyalty.models import CustomerBalance

from .exceptions import ContendedError, InsufficientBalanceError


def lock_balance(*, customer, restaurant):
    """
    Return the customer's balance row locked for update.

    Creates the row on first use.

    Raises:
        ContendedError: If the database gave up waiting for the row lock.
    """
    CustomerBalance.objects.get_or_create(customer=customer, restaurant=restaurant)
    try:
        return (
            CustomerBalance.objects
            .select_for_update()
            .select_related('restaurant')
            .get(customer=customer, restaurant=restaurant)
        )
    except OperationalError as exc:
        raise ContendedError(customer_id=str(customer.pk)) from exc


def apply_delta(balance, *, points=0, stamps=0):
    """
    Add signed deltas to a locked balance and save it.

    Never clamps: a result below zero raises instead.

    Raises:
        InsufficientBalanceError: If either field would become negative.
    """
    new_points = balance.points + points
    new_stamps = balance.stamps + stamps
    if new_points < 0 or new_stamps < 0:
        raise InsufficientBalanceError(
            customer_id=str(balance.customer_id),
            points=balance.points,
            stamps=balance.stamps,
            points_delta=points,
            stamps_delta=stamps,
        )

    balance.points = new_points
    balance.stamps = new_stamps
    balance.save(update_fields=['points', 'stamps', 'updated_at'])
    return balance


def read_balance(*, customer, restaurant):
    """Return ``{'points': int, 'stamps': int}``; zeros if nothing was earned yet."""
    row = (
        CustomerBalance.objects
        .filter(customer=customer, restaurant=restaurant)
        .values('points', 'stamps')
        .first()
    )
    return row or {'points': 0, 'stamps': 0}
