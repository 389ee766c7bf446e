"""
Management command to compare stored balances with the ledger.

Reports every balance whose stored points/stamps differ from the sum of
its ledger history. Nothing is corrected; mismatches need a manual
adjustment after investigation.

Usage:
    python manage.py check_loyalty_balances
    python manage.py check_loyalty_balances --restaurant <uuid>
"""

from django.core.management.base import BaseCommand, CommandError
from apps.restaurants.models import Restaurant
from apps.loyalty.services import iter_discrepancies


class Command(BaseCommand):
    help = 'Check that every customer balance matches its ledger history'

    def add_arguments(self, parser):
        parser.add_argument(
            '--restaurant',
            help='Only check balances of this restaurant (UUID)',
        )

    def handle(self, *args, **options):
        restaurant = None
        if options['restaurant']:
            restaurant = Restaurant.objects.filter(pk=options['restaurant']).first()
            if restaurant is None:
                raise CommandError(f"Restaurant {options['restaurant']} not found")

        mismatches = 0
        for balance, stored, expected in iter_discrepancies(restaurant):
            mismatches += 1
            self.stdout.write(
                f'  - {balance.customer.email} @ {balance.restaurant.name} | '
                f'stored {stored} | ledger {expected}'
            )

        if mismatches:
            raise CommandError(f'{mismatches} balance(s) do not match the ledger')

        self.stdout.write(
            self.style.SUCCESS('All balances match the ledger.')
        )
