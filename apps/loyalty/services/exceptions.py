"""
Domain exceptions for the loyalty ledger.

These exceptions represent business rule violations raised by the
ledger services. They are separate from HTTP concerns; views translate
them into responses (see apps.loyalty.views).

Exception Hierarchy:
    LoyaltyServiceError (base)
    ├── InvalidAmountError
    ├── InvalidRewardError
    ├── InvalidConfigurationError
    ├── InsufficientBalanceError
    ├── DailyCapExceededError
    ├── DailyLimitReachedError
    ├── NotFoundError
    ├── InvalidStateError
    │   └── AlreadyCancelledError
    ├── ContendedError
    └── ConsistencyViolationError

Usage:
    from apps.loyalty.services import LedgerEngine, InsufficientBalanceError

    try:
        engine.create_redemption(customer_id=customer.id, reward_id=reward.id)
    except InsufficientBalanceError:
        ...
"""


class LoyaltyServiceError(Exception):
    """
    Base exception for all loyalty ledger errors.

    ``code`` is a stable identifier callers can branch on or return
    to clients; ``retryable`` tells whether repeating the same call
    may succeed.
    """

    code = 'loyalty_error'
    retryable = False
    default_message = 'Loyalty operation failed.'

    def __init__(self, message=None, **context):
        self.context = context
        super().__init__(message or self.default_message)


class InvalidAmountError(LoyaltyServiceError):
    """Raised when a purchase or adjustment amount is not positive."""

    code = 'invalid_amount'
    default_message = 'Amount must be greater than zero.'


class InvalidRewardError(LoyaltyServiceError):
    """Raised when a reward has no cost in the restaurant's mode or is not redeemable."""

    code = 'invalid_reward'
    default_message = 'This reward cannot be redeemed.'


class InvalidConfigurationError(LoyaltyServiceError):
    """Raised when the restaurant's earn ratio cannot be applied."""

    code = 'invalid_configuration'
    default_message = 'The loyalty program is not configured correctly.'


class InsufficientBalanceError(LoyaltyServiceError):
    """Raised when an operation would drive a balance below zero."""

    code = 'insufficient_balance'
    default_message = 'Insufficient balance.'


class DailyCapExceededError(LoyaltyServiceError):
    """Raised when a customer already earned stamps on the transaction date."""

    code = 'daily_cap_exceeded'
    default_message = 'Customer already earned stamps today.'


class DailyLimitReachedError(LoyaltyServiceError):
    """Raised when a customer reached the restaurant's daily redemption limit."""

    code = 'daily_limit_reached'
    default_message = 'Daily redemption limit reached.'


class NotFoundError(LoyaltyServiceError):
    """Raised when a customer, transaction, reward or redemption does not exist."""

    code = 'not_found'
    default_message = 'Not found.'


class InvalidStateError(LoyaltyServiceError):
    """Raised on a lifecycle transition that is not allowed from the current status."""

    code = 'invalid_state'
    default_message = 'This action is not allowed in the current state.'


class AlreadyCancelledError(InvalidStateError):
    """Raised when cancelling a transaction that is already cancelled."""

    code = 'already_cancelled'
    default_message = 'Transaction is already cancelled.'


class ContendedError(LoyaltyServiceError):
    """Raised when the customer's balance is locked by another operation. Retry later."""

    code = 'contended'
    retryable = True
    default_message = 'Balance is busy, please retry.'


class ConsistencyViolationError(LoyaltyServiceError):
    """
    Raised when a stored balance disagrees with its ledger history.

    Never corrected automatically; requires manual reconciliation
    (``manage.py check_loyalty_balances``).
    """

    code = 'consistency_violation'
    default_message = 'Balance does not match ledger history.'
