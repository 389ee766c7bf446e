import pytest
from datetime import timedelta
from decimal import Decimal
from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from apps.loyalty.analytics import LoyaltyAnalytics
from apps.loyalty.models import Reward
from apps.loyalty.services import LedgerEngine


@pytest.fixture
def activity(engine, customer, other_customer, staff, reward):
    """Two customers earning, one verified and one cancelled redemption."""
    engine.record_transaction(customer_id=customer.pk, amount=Decimal('50000'))
    engine.record_transaction(customer_id=other_customer.pk, amount=Decimal('30000'))
    cancelled = engine.record_transaction(customer_id=other_customer.pk, amount=Decimal('10000'))
    engine.cancel_transaction(transaction_id=cancelled.pk)

    verified = engine.create_redemption(customer_id=customer.pk, reward_id=reward.pk)
    engine.verify_redemption(code=verified.redemption_code, verified_by=staff)
    pending = engine.create_redemption(customer_id=other_customer.pk, reward_id=reward.pk)
    engine.cancel_redemption(code=pending.redemption_code)


@pytest.mark.django_db
class TestLoyaltyAnalytics:
    """Tests for LoyaltyAnalytics"""

    def test_summary(self, restaurant, activity):
        summary = LoyaltyAnalytics.summary(restaurant)

        assert summary['total_customers'] == 2
        assert summary['total_transactions'] == 3
        assert summary['total_redemptions'] == 2
        # 5 + 3 from active transactions, the cancelled one does not count
        assert summary['units_issued'] == 8
        assert summary['units_redeemed'] == 2
        assert summary['units_outstanding'] == 6
        assert summary['unit'] == 'points'

    def test_summary_of_empty_restaurant(self, other_restaurant):
        summary = LoyaltyAnalytics.summary(other_restaurant)

        assert summary['units_issued'] == 0
        assert summary['units_redeemed'] == 0
        assert summary['units_outstanding'] == 0

    def test_daily_active_customers(self, restaurant, customer, other_customer):
        now = timezone.now()
        old_engine = LedgerEngine(restaurant, clock=lambda: now - timedelta(days=10))
        old_engine.record_transaction(customer_id=customer.pk, amount=Decimal('10000'))
        engine = LedgerEngine(restaurant, clock=lambda: now)
        engine.record_transaction(customer_id=customer.pk, amount=Decimal('10000'))
        engine.record_transaction(customer_id=customer.pk, amount=Decimal('10000'))
        engine.record_transaction(customer_id=other_customer.pk, amount=Decimal('10000'))

        rows = LoyaltyAnalytics.daily_active_customers(restaurant, days=7, now=now)

        assert rows == [{'day': timezone.localdate(now), 'customers': 2}]

    def test_top_rewards(self, restaurant, engine, customer, staff, reward):
        engine.adjust_balance(customer_id=customer.pk, amount=10, direction='add', performed_by=staff)
        soup = Reward.objects.create(restaurant=restaurant, title='Free Soup', required_points=1)
        for reward_id in [reward.pk, soup.pk, soup.pk]:
            redemption = engine.create_redemption(customer_id=customer.pk, reward_id=reward_id)
            engine.verify_redemption(code=redemption.redemption_code, verified_by=staff)

        rows = LoyaltyAnalytics.top_rewards(restaurant)

        assert rows == [
            {'title': 'Free Soup', 'count': 2},
            {'title': 'Free Iced Tea', 'count': 1},
        ]


@pytest.mark.django_db
class TestStatsAPI:
    """Tests for GET /api/loyalty/stats/"""

    def test_staff_gets_stats(self, staff_client, activity):
        response = staff_client.get(reverse('loyalty:stats'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['units_issued'] == 8
        assert response.data['top_rewards'] == [{'title': 'Free Iced Tea', 'count': 1}]
        assert response.data['daily_active_customers'][0]['customers'] == 2

    def test_invalid_days(self, staff_client):
        response = staff_client.get(reverse('loyalty:stats'), {'days': 0})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_customer_cannot_read_stats(self, customer_client):
        response = customer_client.get(reverse('loyalty:stats'))

        assert response.status_code == status.HTTP_403_FORBIDDEN
