"""
Transaction ledger: earn events.

Append-only history of purchases that credited points or stamps.
A transaction can be cancelled (its contribution is reversed) and a
cancelled transaction can be deleted for good.

All functions expect to run inside the ledger engine's atomic block,
with the customer's balance row already locked.
"""

from apps.loyalty.models import LoyaltyTransaction, TransactionStatus

from . import balance_store
from .earn_policy import check_daily_cap, compute_earned, split_units, to_amount
from .exceptions import (
    AlreadyCancelledError,
    DailyCapExceededError,
    InsufficientBalanceError,
    InvalidStateError,
)


def transactions_on_date(*, customer, restaurant, transaction_date):
    """All of the customer's transactions on a date, whatever their status."""
    return LoyaltyTransaction.objects.filter(
        customer=customer,
        restaurant=restaurant,
        transaction_date=transaction_date,
    )


def record_transaction(*, balance, amount, transaction_date, now, recorded_by=None):
    """
    Record a purchase and credit the earned units.

    Args:
        balance (CustomerBalance): Locked balance of the customer.
        amount (Decimal): Purchase amount, must be positive.
        transaction_date (date): Business date of the purchase.
        now (datetime): Creation timestamp.
        recorded_by (User, optional): Staff member recording it.

    Returns:
        LoyaltyTransaction: The new active transaction.

    Raises:
        InvalidAmountError: If amount is not positive.
        DailyCapExceededError: If the stamp daily cap blocks the customer.
    """
    restaurant = balance.restaurant
    amount = to_amount(amount)
    units = compute_earned(amount, restaurant)

    existing = transactions_on_date(
        customer=balance.customer,
        restaurant=restaurant,
        transaction_date=transaction_date,
    )
    if not check_daily_cap(restaurant, existing):
        raise DailyCapExceededError(
            customer_id=str(balance.customer_id),
            transaction_date=transaction_date.isoformat(),
        )

    points, stamps = split_units(units, restaurant)
    transaction = LoyaltyTransaction.objects.create(
        restaurant=restaurant,
        customer=balance.customer,
        amount=amount,
        points_earned=points,
        stamps_earned=stamps,
        transaction_date=transaction_date,
        status=TransactionStatus.ACTIVE,
        recorded_by=recorded_by,
        created_at=now,
    )
    balance_store.apply_delta(balance, points=points, stamps=stamps)
    return transaction


def cancel_transaction(*, transaction, balance, now, cancelled_by=None):
    """
    Cancel an active transaction and reverse what it credited.

    The reversal is refused rather than clamped when the balance no
    longer covers it, e.g. the earned points were already redeemed.

    Raises:
        AlreadyCancelledError: If the transaction is already cancelled.
        InsufficientBalanceError: If the balance is below the
            transaction's contribution.
    """
    if transaction.status == TransactionStatus.CANCELLED:
        raise AlreadyCancelledError(transaction_id=str(transaction.pk))

    try:
        balance_store.apply_delta(
            balance,
            points=-transaction.points_earned,
            stamps=-transaction.stamps_earned,
        )
    except InsufficientBalanceError as exc:
        raise InsufficientBalanceError(
            "Balance no longer covers this transaction",
            transaction_id=str(transaction.pk),
            **exc.context,
        ) from exc

    transaction.status = TransactionStatus.CANCELLED
    transaction.cancelled_at = now
    transaction.cancelled_by = cancelled_by
    transaction.save(update_fields=['status', 'cancelled_at', 'cancelled_by'])
    return transaction


def delete_transaction(*, transaction):
    """
    Permanently delete a cancelled transaction.

    Cancellation already reversed its balance effect, so deletion
    changes nothing else.

    Raises:
        InvalidStateError: If the transaction is still active.
    """
    if transaction.status != TransactionStatus.CANCELLED:
        raise InvalidStateError(
            "Cancel the transaction before deleting it",
            transaction_id=str(transaction.pk),
        )
    transaction.delete()
