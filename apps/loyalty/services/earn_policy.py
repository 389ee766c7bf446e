"""
Earn policy.

Pure functions converting a purchase amount into points or stamps
according to a restaurant's ratio configuration, plus the stamp
daily-cap rule. Nothing here touches the database.
"""

from decimal import Decimal, InvalidOperation

from .exceptions import InvalidAmountError, InvalidConfigurationError


# Matches LoyaltyTransaction.amount: DecimalField(max_digits=12, decimal_places=2)
AMOUNT_MAX_DIGITS = 12
AMOUNT_DECIMAL_PLACES = 2
CENT = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)
MAX_AMOUNT = Decimal(1).scaleb(AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES)


def to_amount(value):
    """
    Coerce ``value`` to a Decimal with two decimal places.

    Raises:
        InvalidAmountError: If the value is not numeric, has more than two
            decimal places or does not fit twelve digits.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmountError(f"Invalid amount: {value!r}")
    if abs(amount) >= MAX_AMOUNT:
        raise InvalidAmountError(
            f"Amount must be less than {MAX_AMOUNT:,.0f}", amount=str(amount)
        )
    quantized = amount.quantize(CENT)
    if quantized != amount:
        raise InvalidAmountError(
            f"Amount may have at most {AMOUNT_DECIMAL_PLACES} decimal places",
            amount=str(amount),
        )
    return quantized


def compute_earned(amount, restaurant):
    """
    Compute units earned for a purchase.

    ``units = floor(amount / ratio_amount) * ratio_units``, in the
    restaurant's active loyalty mode.

    Args:
        amount (Decimal | str | int): Purchase amount.
        restaurant (Restaurant): Source of mode and ratio.

    Returns:
        int: Units earned. Zero when the amount does not reach one ratio
        step; that is still a valid transaction.

    Raises:
        InvalidAmountError: If amount is not a positive number.
        InvalidConfigurationError: If the ratio is not positive.

    Example:
        Ratio Rp10,000 -> 1 point::

            >>> compute_earned(Decimal('25000'), restaurant)
            2
            >>> compute_earned(Decimal('9999.99'), restaurant)
            0
    """
    amount = to_amount(amount)
    if amount <= 0:
        raise InvalidAmountError("Amount must be greater than zero", amount=str(amount))

    ratio_amount, ratio_units = restaurant.get_ratio()
    ratio_amount = Decimal(ratio_amount)
    if ratio_amount <= 0 or ratio_units < 1:
        raise InvalidConfigurationError(
            f"Invalid {restaurant.unit_name} ratio: {ratio_amount} -> {ratio_units}",
            restaurant_id=str(restaurant.pk),
        )

    # Both operands positive, so // is a floor
    steps = int(amount // ratio_amount)
    return steps * ratio_units


def split_units(units, restaurant):
    """Return (points, stamps) with ``units`` placed in the restaurant's mode."""
    if restaurant.is_stamp_mode:
        return 0, units
    return units, 0


def check_daily_cap(restaurant, transactions_on_date):
    """
    Decide whether the customer may earn again on a date.

    Only stamp-mode restaurants that disallow multiple stamps per day
    are capped. Any existing transaction on the date blocks, whatever
    its status, so cancelling the first transaction of the day does
    not re-open the cap.

    Args:
        restaurant (Restaurant): Loyalty configuration.
        transactions_on_date (QuerySet | list): The customer's existing
            transactions for the date.

    Returns:
        bool: True if a new transaction is allowed.
    """
    if not restaurant.is_stamp_mode or restaurant.allow_multiple_stamps_per_day:
        return True

    if hasattr(transactions_on_date, 'exists'):
        return not transactions_on_date.exists()
    return len(transactions_on_date) == 0
