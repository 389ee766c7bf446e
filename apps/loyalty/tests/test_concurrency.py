"""
Concurrency tests for the ledger engine.

Run with real database transactions and one connection per thread.
"""

import threading
from decimal import Decimal

from django.db import connection
from django.test import TransactionTestCase

from apps.accounts.models import User, UserRole
from apps.restaurants.models import Restaurant
from apps.loyalty.models import LoyaltyTransaction, Redemption
from apps.loyalty.services import (
    LedgerEngine,
    InsufficientBalanceError,
    ledger_totals,
)


def run_in_threads(target, count):
    """Start ``count`` threads on ``target`` together and wait for all of them."""
    barrier = threading.Barrier(count)

    def worker(index):
        try:
            barrier.wait()
            target(index)
        finally:
            connection.close()

    threads = [
        threading.Thread(target=worker, args=(i,))
        for i in range(count)
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()


class TestConcurrency(TransactionTestCase):
    """Test per-customer serialization with real database transactions."""

    def setUp(self):
        """Set up a points restaurant, a customer with 2 points and a 2-point reward."""
        from apps.loyalty.models import Reward

        self.restaurant = Restaurant.objects.create(
            name='Concurrent Warung',
            points_ratio_amount=Decimal('10000.00'),
            points_ratio_points=1,
        )
        self.customer = User.objects.create_user(
            email='concurrent@example.com',
            password='TestPass123!',
            restaurant=self.restaurant,
            role=UserRole.CUSTOMER,
        )
        self.reward = Reward.objects.create(
            restaurant=self.restaurant,
            title='Free Dessert',
            required_points=2,
        )
        self.engine = LedgerEngine(self.restaurant)
        self.engine.record_transaction(customer_id=self.customer.pk, amount=Decimal('20000'))

    def test_concurrent_redemptions_cannot_overdraw(self):
        """Two redemptions against a balance covering one: exactly one succeeds."""
        results = []
        errors = []
        unexpected = []

        def redeem(index):
            try:
                results.append(LedgerEngine(self.restaurant).create_redemption(
                    customer_id=self.customer.pk,
                    reward_id=self.reward.pk,
                ))
            except InsufficientBalanceError:
                errors.append(True)
            except Exception as exc:
                unexpected.append(exc)

        run_in_threads(redeem, 2)

        assert unexpected == []
        assert len(results) == 1
        assert len(errors) == 1

        assert Redemption.objects.filter(customer=self.customer).count() == 1
        assert self.engine.get_balance(customer_id=self.customer.pk) == {'points': 0, 'stamps': 0}

    def test_concurrent_earns_are_all_applied(self):
        """Parallel earns for one customer add up as if run one after another."""
        unexpected = []

        def earn(index):
            try:
                LedgerEngine(self.restaurant).record_transaction(
                    customer_id=self.customer.pk,
                    amount=Decimal('10000'),
                )
            except Exception as exc:
                unexpected.append(exc)

        run_in_threads(earn, 5)

        assert unexpected == []
        assert LoyaltyTransaction.objects.filter(customer=self.customer).count() == 6
        balance = self.engine.get_balance(customer_id=self.customer.pk)
        assert balance == {'points': 7, 'stamps': 0}
        assert balance == ledger_totals(
            customer_id=self.customer.pk,
            restaurant_id=self.restaurant.pk,
        )

    def test_mixed_operations_keep_the_invariant(self):
        """Earning, redeeming and cancelling in parallel never breaks the ledger."""
        for _ in range(3):
            self.engine.record_transaction(customer_id=self.customer.pk, amount=Decimal('20000'))
        # 8 points, enough for four redemptions
        unexpected = []

        def operate(index):
            engine = LedgerEngine(self.restaurant)
            try:
                if index % 2:
                    engine.record_transaction(customer_id=self.customer.pk, amount=Decimal('10000'))
                else:
                    redemption = engine.create_redemption(
                        customer_id=self.customer.pk,
                        reward_id=self.reward.pk,
                    )
                    engine.cancel_redemption(code=redemption.redemption_code)
            except Exception as exc:
                unexpected.append(exc)

        run_in_threads(operate, 6)

        assert unexpected == []
        balance = self.engine.get_balance(customer_id=self.customer.pk)
        assert balance == {'points': 11, 'stamps': 0}
        assert balance == ledger_totals(
            customer_id=self.customer.pk,
            restaurant_id=self.restaurant.pk,
        )
