"""
Loyalty app services layer.

The ledger engine is the only writer of balances, transactions and
redemptions. All state-changing operations run under the customer's
lock inside a single database transaction.
"""

from .exceptions import (
    LoyaltyServiceError,
    InvalidAmountError,
    InvalidRewardError,
    InvalidConfigurationError,
    InsufficientBalanceError,
    DailyCapExceededError,
    DailyLimitReachedError,
    NotFoundError,
    InvalidStateError,
    AlreadyCancelledError,
    ContendedError,
    ConsistencyViolationError,
)

from .earn_policy import (
    compute_earned,
    check_daily_cap,
)

from .redemption_ledger import (
    generate_redemption_code,
)

from .reconciliation import (
    ledger_totals,
    iter_discrepancies,
)

from .audit import (
    LedgerEvent,
    record_activity,
)

from .customer_management import (
    create_customer,
    update_customer,
)

from .ledger_engine import (
    LedgerEngine,
    ADJUST_ADD,
    ADJUST_SUBTRACT,
)


__all__ = [
    # Exceptions
    'LoyaltyServiceError',
    'InvalidAmountError',
    'InvalidRewardError',
    'InvalidConfigurationError',
    'InsufficientBalanceError',
    'DailyCapExceededError',
    'DailyLimitReachedError',
    'NotFoundError',
    'InvalidStateError',
    'AlreadyCancelledError',
    'ContendedError',
    'ConsistencyViolationError',

    # Earn policy
    'compute_earned',
    'check_daily_cap',

    # Redemption codes
    'generate_redemption_code',

    # Reconciliation
    'ledger_totals',
    'iter_discrepancies',

    # Audit
    'LedgerEvent',
    'record_activity',

    # Customers
    'create_customer',
    'update_customer',

    # Engine
    'LedgerEngine',
    'ADJUST_ADD',
    'ADJUST_SUBTRACT',
]
