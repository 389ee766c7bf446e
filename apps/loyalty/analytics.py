"""
Analytics Module
=================

Read-only aggregate queries behind the restaurant dashboard.

Classes:
    LoyaltyAnalytics: Static methods for restaurant statistics.

Example:
    Dashboard numbers for the caller's restaurant::

        from apps.loyalty.analytics import LoyaltyAnalytics

        summary = LoyaltyAnalytics.summary(restaurant)
        print(f"{summary['units_issued']} {summary['unit']} issued")

Note:
    Units are counted in the restaurant's active loyalty mode. Issued
    units come from active transactions, redeemed units from verified
    redemptions.
"""

from datetime import timedelta

from django.db.models import Count, IntegerField, Sum
from django.db.models.functions import Coalesce, TruncDate
from django.utils import timezone

from apps.accounts.models import User, UserRole
from apps.loyalty.models import (
    CustomerBalance,
    LoyaltyTransaction,
    Redemption,
    RedemptionStatus,
    TransactionStatus,
)


class LoyaltyAnalytics:
    """
    Aggregate queries over one restaurant's ledger.

    All methods return plain dictionaries or lists, ready for JSON.
    """

    @staticmethod
    def summary(restaurant):
        """
        Headline counts for a restaurant.

        Returns:
            dict: ``total_customers``, ``total_transactions``,
            ``total_redemptions``, ``units_issued``, ``units_redeemed``,
            ``units_outstanding`` and ``unit``.
        """
        if restaurant.is_stamp_mode:
            earned_field, used_field, balance_field = 'stamps_earned', 'stamps_used', 'stamps'
        else:
            earned_field, used_field, balance_field = 'points_earned', 'points_used', 'points'

        issued = LoyaltyTransaction.objects.filter(
            restaurant=restaurant,
            status=TransactionStatus.ACTIVE,
        ).aggregate(total=Coalesce(Sum(earned_field), 0, output_field=IntegerField()))['total']

        redeemed = Redemption.objects.filter(
            restaurant=restaurant,
            status=RedemptionStatus.VERIFIED,
        ).aggregate(total=Coalesce(Sum(used_field), 0, output_field=IntegerField()))['total']

        outstanding = CustomerBalance.objects.filter(
            restaurant=restaurant,
        ).aggregate(total=Coalesce(Sum(balance_field), 0, output_field=IntegerField()))['total']

        return {
            'total_customers': User.objects.filter(
                restaurant=restaurant, role=UserRole.CUSTOMER
            ).count(),
            'total_transactions': LoyaltyTransaction.objects.filter(restaurant=restaurant).count(),
            'total_redemptions': Redemption.objects.filter(restaurant=restaurant).count(),
            'units_issued': issued,
            'units_redeemed': redeemed,
            'units_outstanding': outstanding,
            'unit': restaurant.unit_name,
        }

    @staticmethod
    def daily_active_customers(restaurant, days=7, now=None):
        """
        Distinct customers with a transaction per day, oldest day first.

        Days without transactions are omitted.
        """
        since = (now or timezone.now()) - timedelta(days=days)
        rows = (
            LoyaltyTransaction.objects
            .filter(restaurant=restaurant, created_at__gte=since)
            .annotate(day=TruncDate('created_at'))
            .values('day')
            .annotate(customers=Count('customer', distinct=True))
            .order_by('day')
        )
        return [{'day': row['day'], 'customers': row['customers']} for row in rows]

    @staticmethod
    def top_rewards(restaurant, limit=5):
        """Most redeemed rewards by verified redemptions."""
        rows = (
            Redemption.objects
            .filter(restaurant=restaurant, status=RedemptionStatus.VERIFIED)
            .values('reward_title')
            .annotate(count=Count('id'))
            .order_by('-count', 'reward_title')[:limit]
        )
        return [{'title': row['reward_title'], 'count': row['count']} for row in rows]
