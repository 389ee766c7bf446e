"""
Management command to delete old cancelled transactions and redemptions.

Cancelled records no longer affect any balance, so removing them keeps
balances consistent.

Usage:
    python manage.py purge_cancelled_records --restaurant <uuid> --days 90
    python manage.py purge_cancelled_records --restaurant <uuid> --days 90 --dry-run
"""

from datetime import timedelta

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone
from apps.restaurants.models import Restaurant
from apps.loyalty.models import (
    LoyaltyTransaction,
    Redemption,
    RedemptionStatus,
    TransactionStatus,
)
from apps.loyalty.services import LedgerEngine


class Command(BaseCommand):
    help = 'Delete cancelled transactions and redemptions older than N days'

    def add_arguments(self, parser):
        parser.add_argument(
            '--restaurant',
            required=True,
            help='Restaurant whose records are purged (UUID)',
        )
        parser.add_argument(
            '--days',
            type=int,
            default=90,
            help='Keep cancelled records newer than this many days (default: 90)',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without making changes',
        )

    def handle(self, *args, **options):
        if options['days'] < 0:
            raise CommandError('--days must not be negative')

        restaurant = Restaurant.objects.filter(pk=options['restaurant']).first()
        if restaurant is None:
            raise CommandError(f"Restaurant {options['restaurant']} not found")

        cutoff = timezone.now() - timedelta(days=options['days'])

        if options['dry_run']:
            transactions = LoyaltyTransaction.objects.filter(
                restaurant=restaurant,
                status=TransactionStatus.CANCELLED,
                created_at__lt=cutoff
            ).count()
            redemptions = Redemption.objects.filter(
                restaurant=restaurant,
                status=RedemptionStatus.CANCELLED,
                created_at__lt=cutoff
            ).count()
            self.stdout.write(
                f'\nWould delete {transactions} transaction(s) and '
                f'{redemptions} redemption(s) cancelled before {cutoff:%Y-%m-%d}.'
            )
            self.stdout.write(
                self.style.WARNING('--dry-run mode: No changes made.')
            )
            return

        deleted = LedgerEngine(restaurant).purge_cancelled_records(before=cutoff)

        self.stdout.write(
            self.style.SUCCESS(
                f"Deleted {deleted['transactions']} transaction(s) and "
                f"{deleted['redemptions']} redemption(s)."
            )
        )
