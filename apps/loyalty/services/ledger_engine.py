"""
Ledger engine.

The only writer of customer balances. Each operation:

    1. takes the customer's lock (bounded wait, ContendedError on timeout)
    2. opens one ``transaction.atomic()`` block
    3. locks the balance row with ``select_for_update()``
    4. writes the ledger row and the balance delta
    5. checks the balance against the ledger (``verify_on_write``)
    6. hands a LedgerEvent to the audit sink

Any exception in steps 3-6 rolls the whole operation back, so a ledger
row is never committed without its balance delta or the other way round.

Example:
    Earn, redeem and verify::

        engine = LedgerEngine(restaurant)
        engine.record_transaction(customer_id=customer.id, amount=Decimal('25000'))
        redemption = engine.create_redemption(customer_id=customer.id, reward_id=reward.id)
        engine.verify_redemption(code=redemption.redemption_code, verified_by=staff)
"""

import logging
import uuid
from contextlib import contextmanager

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User, UserRole
from apps.loyalty.models import (
    ActivityType,
    BalanceAdjustment,
    LoyaltyTransaction,
    Redemption,
    RedemptionStatus,
    Reward,
    TransactionStatus,
)

from . import balance_store, reconciliation, redemption_ledger, transaction_ledger
from .audit import LedgerEvent, record_activity
from .earn_policy import split_units
from .exceptions import InvalidAmountError, NotFoundError
from .locking import customer_locks

logger = logging.getLogger(__name__)

ADJUST_ADD = 'add'
ADJUST_SUBTRACT = 'subtract'


def _normalize_id(value):
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        raise NotFoundError(f"Invalid identifier: {value!r}")


class LedgerEngine:
    """
    Loyalty ledger operations for one restaurant.

    Args:
        restaurant (Restaurant): Restaurant whose ledger is operated on.
        clock (callable, optional): Returns the current aware datetime.
            Defaults to ``django.utils.timezone.now``.
        code_generator (callable, optional): ``now -> str`` redemption
            code factory. Defaults to ``generate_redemption_code``.
        audit_sink (callable, optional): Receives a LedgerEvent after each
            mutation. Defaults to ``record_activity``.
        lock_timeout (float, optional): Seconds to wait for a customer
            lock. Defaults to ``settings.LOYALTY_LOCK_TIMEOUT``.
        verify_on_write (bool, optional): Check the ledger invariant in
            every mutation. Defaults to ``settings.LOYALTY_VERIFY_ON_WRITE``.
        locks (CustomerLockRegistry, optional): Lock registry, shared
            process-wide by default.
    """

    def __init__(
        self,
        restaurant,
        *,
        clock=None,
        code_generator=None,
        audit_sink=None,
        lock_timeout=None,
        verify_on_write=None,
        locks=None,
    ):
        self.restaurant = restaurant
        self._clock = clock or timezone.now
        self._code_generator = code_generator or redemption_ledger.generate_redemption_code
        self._audit_sink = audit_sink or record_activity
        self._lock_timeout = (
            lock_timeout if lock_timeout is not None
            else getattr(settings, 'LOYALTY_LOCK_TIMEOUT', 5.0)
        )
        self._verify_on_write = (
            verify_on_write if verify_on_write is not None
            else getattr(settings, 'LOYALTY_VERIFY_ON_WRITE', True)
        )
        self._max_code_attempts = getattr(settings, 'LOYALTY_CODE_MAX_ATTEMPTS', 10)
        self._locks = locks or customer_locks

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _get_customer(self, customer_id):
        try:
            return User.objects.get(
                pk=customer_id,
                restaurant=self.restaurant,
                role=UserRole.CUSTOMER,
            )
        except (User.DoesNotExist, ValidationError):
            raise NotFoundError(f"Customer {customer_id} not found")

    @contextmanager
    def _customer_scope(self, customer_id):
        """Lock the customer, open the atomic block and yield the locked balance."""
        customer_id = _normalize_id(customer_id)
        with self._locks.hold(customer_id, self._lock_timeout):
            with transaction.atomic():
                customer = self._get_customer(customer_id)
                yield balance_store.lock_balance(customer=customer, restaurant=self.restaurant)

    def _commit(self, balance, *, action_type, target_type, target_id,
                before, performed_by=None, details=None):
        """Verify the invariant and emit the audit event, still inside the atomic block."""
        if self._verify_on_write:
            reconciliation.assert_consistent(balance, operation=action_type)

        self._audit_sink(LedgerEvent(
            action_type=action_type,
            target_type=target_type,
            target_id=str(target_id),
            before=before,
            after=balance.as_dict(),
            restaurant_id=self.restaurant.pk,
            performed_by_id=getattr(performed_by, 'pk', None),
            details=details or {},
        ))

    def _owner_of(self, model, **lookup):
        """Customer id owning a ledger row of this restaurant, read before locking."""
        try:
            customer_id = (
                model.objects
                .filter(restaurant=self.restaurant, **lookup)
                .values_list('customer_id', flat=True)
                .first()
            )
        except ValidationError:
            customer_id = None
        if customer_id is None:
            raise NotFoundError(f"{model._meta.verbose_name.capitalize()} not found")
        return customer_id

    # ------------------------------------------------------------------
    # Earn events
    # ------------------------------------------------------------------

    def record_transaction(self, *, customer_id, amount, performed_by=None):
        """
        Record a purchase for a customer and credit the earned units.

        Returns:
            LoyaltyTransaction: The new active transaction.

        Raises:
            NotFoundError, InvalidAmountError, DailyCapExceededError,
            ContendedError, ConsistencyViolationError
        """
        with self._customer_scope(customer_id) as balance:
            before = balance.as_dict()
            now = self._clock()
            txn = transaction_ledger.record_transaction(
                balance=balance,
                amount=amount,
                transaction_date=timezone.localdate(now),
                now=now,
                recorded_by=performed_by,
            )
            self._commit(
                balance,
                action_type=ActivityType.TRANSACTION_RECORDED,
                target_type='transaction',
                target_id=txn.pk,
                before=before,
                performed_by=performed_by,
                details={
                    'customer_id': str(balance.customer_id),
                    'amount': str(txn.amount),
                    'points_earned': txn.points_earned,
                    'stamps_earned': txn.stamps_earned,
                },
            )
        return txn

    def cancel_transaction(self, *, transaction_id, performed_by=None):
        """
        Cancel an active transaction, reversing its contribution.

        Raises:
            NotFoundError, AlreadyCancelledError, InsufficientBalanceError,
            ContendedError, ConsistencyViolationError
        """
        customer_id = self._owner_of(LoyaltyTransaction, pk=transaction_id)
        with self._customer_scope(customer_id) as balance:
            txn = self._lock_transaction(transaction_id, customer_id)
            before = balance.as_dict()
            transaction_ledger.cancel_transaction(
                transaction=txn,
                balance=balance,
                now=self._clock(),
                cancelled_by=performed_by,
            )
            self._commit(
                balance,
                action_type=ActivityType.TRANSACTION_CANCELLED,
                target_type='transaction',
                target_id=txn.pk,
                before=before,
                performed_by=performed_by,
                details={
                    'customer_id': str(customer_id),
                    'points_reversed': txn.points_earned,
                    'stamps_reversed': txn.stamps_earned,
                },
            )
        return txn

    def delete_transaction(self, *, transaction_id, performed_by=None):
        """
        Permanently delete a cancelled transaction.

        Raises:
            NotFoundError, InvalidStateError, ContendedError
        """
        customer_id = self._owner_of(LoyaltyTransaction, pk=transaction_id)
        with self._customer_scope(customer_id) as balance:
            txn = self._lock_transaction(transaction_id, customer_id)
            details = {
                'customer_id': str(customer_id),
                'amount': str(txn.amount),
                'transaction_date': txn.transaction_date.isoformat(),
            }
            target_id = txn.pk
            before = balance.as_dict()
            transaction_ledger.delete_transaction(transaction=txn)
            self._commit(
                balance,
                action_type=ActivityType.TRANSACTION_DELETED,
                target_type='transaction',
                target_id=target_id,
                before=before,
                performed_by=performed_by,
                details=details,
            )

    def _lock_transaction(self, transaction_id, customer_id):
        try:
            return (
                LoyaltyTransaction.objects
                .select_for_update()
                .get(pk=transaction_id, restaurant=self.restaurant, customer_id=customer_id)
            )
        except LoyaltyTransaction.DoesNotExist:
            raise NotFoundError(f"Transaction {transaction_id} not found")

    # ------------------------------------------------------------------
    # Spend events
    # ------------------------------------------------------------------

    def create_redemption(self, *, customer_id, reward_id):
        """
        Redeem a reward for a customer, placing a hold on the balance.

        Returns:
            Redemption: The new pending redemption.

        Raises:
            NotFoundError, InvalidRewardError, DailyLimitReachedError,
            InsufficientBalanceError, ContendedError, ConsistencyViolationError
        """
        with self._customer_scope(customer_id) as balance:
            try:
                reward = Reward.objects.get(pk=reward_id, restaurant=self.restaurant)
            except (Reward.DoesNotExist, ValidationError):
                raise NotFoundError(f"Reward {reward_id} not found")

            now = self._clock()
            before = balance.as_dict()
            today_count = redemption_ledger.count_redemptions_today(
                customer=balance.customer,
                restaurant=self.restaurant,
                today=timezone.localdate(now),
            )
            redemption = redemption_ledger.create_redemption(
                balance=balance,
                reward=reward,
                today_count=today_count,
                now=now,
                code_generator=self._code_generator,
                max_code_attempts=self._max_code_attempts,
            )
            self._commit(
                balance,
                action_type=ActivityType.REDEMPTION_CREATED,
                target_type='redemption',
                target_id=redemption.pk,
                before=before,
                performed_by=balance.customer,
                details={
                    'redemption_code': redemption.redemption_code,
                    'reward_title': redemption.reward_title,
                    'points_used': redemption.points_used,
                    'stamps_used': redemption.stamps_used,
                },
            )
        return redemption

    def verify_redemption(self, *, code, verified_by):
        """
        Mark a pending redemption as honored by staff.

        Raises:
            NotFoundError, InvalidStateError, ContendedError
        """
        code = self._normalize_code(code)
        customer_id = self._owner_of(Redemption, redemption_code=code)
        with self._customer_scope(customer_id) as balance:
            redemption = self._lock_redemption(code)
            before = balance.as_dict()
            redemption_ledger.verify_redemption(
                redemption=redemption,
                verified_by=verified_by,
                now=self._clock(),
            )
            self._commit(
                balance,
                action_type=ActivityType.REDEMPTION_VERIFIED,
                target_type='redemption',
                target_id=redemption.pk,
                before=before,
                performed_by=verified_by,
                details={
                    'redemption_code': code,
                    'status_before': RedemptionStatus.PENDING,
                    'status_after': redemption.status,
                },
            )
        return redemption

    def cancel_redemption(self, *, code, performed_by=None):
        """
        Cancel a pending redemption and credit the hold back.

        Raises:
            NotFoundError, InvalidStateError, ContendedError,
            ConsistencyViolationError
        """
        code = self._normalize_code(code)
        customer_id = self._owner_of(Redemption, redemption_code=code)
        with self._customer_scope(customer_id) as balance:
            redemption = self._lock_redemption(code)
            before = balance.as_dict()
            redemption_ledger.cancel_redemption(
                redemption=redemption,
                balance=balance,
                now=self._clock(),
            )
            self._commit(
                balance,
                action_type=ActivityType.REDEMPTION_CANCELLED,
                target_type='redemption',
                target_id=redemption.pk,
                before=before,
                performed_by=performed_by,
                details={
                    'redemption_code': code,
                    'points_released': redemption.points_used,
                    'stamps_released': redemption.stamps_used,
                },
            )
        return redemption

    @staticmethod
    def _normalize_code(code):
        return (code or '').strip().upper()

    def _lock_redemption(self, code):
        try:
            return (
                Redemption.objects
                .select_for_update()
                .get(restaurant=self.restaurant, redemption_code=code)
            )
        except Redemption.DoesNotExist:
            raise NotFoundError(f"Redemption {code} not found")

    # ------------------------------------------------------------------
    # Manual adjustments
    # ------------------------------------------------------------------

    def adjust_balance(self, *, customer_id, amount, direction, performed_by, note=''):
        """
        Credit or debit a customer's balance by hand.

        The adjustment is stored as a BalanceAdjustment row in the
        restaurant's unit, so the balance stays derivable from the ledger.

        Args:
            amount (int): Positive number of points/stamps.
            direction (str): ``'add'`` or ``'subtract'``.

        Raises:
            NotFoundError, InvalidAmountError, InsufficientBalanceError,
            ContendedError, ConsistencyViolationError
        """
        if direction not in (ADJUST_ADD, ADJUST_SUBTRACT):
            raise ValueError(f"Unknown adjustment direction: {direction!r}")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmountError("Adjustment must be a positive whole number", amount=amount)

        signed = amount if direction == ADJUST_ADD else -amount
        points, stamps = split_units(signed, self.restaurant)

        with self._customer_scope(customer_id) as balance:
            before = balance.as_dict()
            balance_store.apply_delta(balance, points=points, stamps=stamps)
            adjustment = BalanceAdjustment.objects.create(
                restaurant=self.restaurant,
                customer=balance.customer,
                points_delta=points,
                stamps_delta=stamps,
                note=note,
                performed_by=performed_by,
                created_at=self._clock(),
            )
            self._commit(
                balance,
                action_type=ActivityType.POINTS_ADJUSTMENT,
                target_type='customer',
                target_id=balance.customer_id,
                before=before,
                performed_by=performed_by,
                details={
                    'type': self.restaurant.unit_name,
                    'action': direction,
                    'amount': amount,
                    'note': note,
                },
            )
        return adjustment

    def delete_customer(self, *, customer_id, performed_by=None):
        """
        Delete a customer together with their balance and ledger rows.

        Runs under the customer's lock so no ledger operation for them is
        in flight. The audit event keeps the profile and the final balance.

        Raises:
            NotFoundError, ContendedError
        """
        with self._customer_scope(customer_id) as balance:
            customer = balance.customer
            before = balance.as_dict()
            details = {
                'customer_name': customer.full_name,
                'customer_email': customer.email,
                'customer_phone': customer.phone,
                'transactions': customer.loyalty_transactions.filter(restaurant=self.restaurant).count(),
                'redemptions': customer.redemptions.filter(restaurant=self.restaurant).count(),
            }
            target_id = customer.pk
            customer.delete()
            self._audit_sink(LedgerEvent(
                action_type=ActivityType.CUSTOMER_DELETED,
                target_type='customer',
                target_id=str(target_id),
                before=before,
                after=None,
                restaurant_id=self.restaurant.pk,
                performed_by_id=getattr(performed_by, 'pk', None),
                details=details,
            ))
        logger.info("Deleted customer %s at restaurant %s", target_id, self.restaurant.pk)

    # ------------------------------------------------------------------
    # Reads and maintenance
    # ------------------------------------------------------------------

    def get_balance(self, *, customer_id):
        """Return the customer's committed ``{'points', 'stamps'}``."""
        customer = self._get_customer(_normalize_id(customer_id))
        return balance_store.read_balance(customer=customer, restaurant=self.restaurant)

    def check_consistency(self, *, customer_id):
        """
        Compare the stored balance with the ledger.

        Returns:
            dict: The balance, if consistent.

        Raises:
            ConsistencyViolationError: On mismatch (logged, not corrected).
        """
        with self._customer_scope(customer_id) as balance:
            reconciliation.assert_consistent(balance, operation='check_consistency')
            return balance.as_dict()

    def purge_cancelled_records(self, *, before, performed_by=None):
        """
        Delete cancelled transactions and redemptions created before a cutoff.

        Active transactions and pending/verified redemptions are kept, so
        no balance changes.

        Args:
            before (datetime): Exclusive cutoff on ``created_at``.

        Returns:
            dict: ``{'transactions': int, 'redemptions': int}`` deleted.
        """
        with transaction.atomic():
            deleted_transactions, _ = LoyaltyTransaction.objects.filter(
                restaurant=self.restaurant,
                status=TransactionStatus.CANCELLED,
                created_at__lt=before,
            ).delete()
            deleted_redemptions, _ = Redemption.objects.filter(
                restaurant=self.restaurant,
                status=RedemptionStatus.CANCELLED,
                created_at__lt=before,
            ).delete()
            counts = {
                'transactions': deleted_transactions,
                'redemptions': deleted_redemptions,
            }
            self._audit_sink(LedgerEvent(
                action_type=ActivityType.BULK_DELETE,
                target_type='cancelled_records',
                target_id='',
                before=None,
                after=None,
                restaurant_id=self.restaurant.pk,
                performed_by_id=getattr(performed_by, 'pk', None),
                details={'cutoff': before.isoformat(), 'deleted': counts},
            ))
        logger.info("Purged cancelled records at restaurant %s: %s", self.restaurant.pk, counts)
        return counts
