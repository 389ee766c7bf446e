"""
Management command to create sample data for trying out the API.

Usage:
    python manage.py create_sample_data
    python manage.py create_sample_data --clear

This creates:
- 2 restaurants (points mode and stamp mode)
- 1 administrator and 3 customers per restaurant
- Rewards for each restaurant
- Purchases and redemptions recorded through the ledger engine

All users share the password ``password123``.
"""

from django.core.management.base import BaseCommand
from django.db import transaction
from decimal import Decimal

from apps.accounts.models import User, UserRole
from apps.restaurants.models import Restaurant, LoyaltyMode
from apps.loyalty.models import Reward
from apps.loyalty.services import LedgerEngine

SAMPLE_PASSWORD = 'password123'

RESTAURANTS = [
    {
        'name': 'Warung Sederhana',
        'slug': 'warung',
        'loyalty_mode': LoyaltyMode.POINTS,
        'points_ratio_amount': Decimal('10000.00'),
        'points_ratio_points': 1,
        'max_redemptions_per_day': 2,
        'rewards': [
            {'title': 'Free Iced Tea', 'required_points': 5},
            {'title': 'Free Fried Rice', 'required_points': 15},
        ],
    },
    {
        'name': 'Kopi Kita',
        'slug': 'kopi',
        'loyalty_mode': LoyaltyMode.STAMPS,
        'stamp_ratio_amount': Decimal('50000.00'),
        'stamp_ratio_stamps': 1,
        'allow_multiple_stamps_per_day': False,
        'rewards': [
            {'title': 'Free Latte', 'required_stamps': 5},
        ],
    },
]

CUSTOMERS = ['alice', 'bob', 'charlie']


class Command(BaseCommand):
    help = 'Create sample restaurants, users and loyalty activity'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Clear existing sample data before creating it again',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing data...')
            self.clear_data()

        self.stdout.write('Creating sample data...')

        for config in RESTAURANTS:
            restaurant, admin, customers = self.create_restaurant(config)
            self.create_activity(restaurant, admin, customers)

        self.stdout.write(self.style.SUCCESS('\nSample data created successfully!'))
        self.stdout.write(f'Log in with any sample email and password "{SAMPLE_PASSWORD}".')

    def clear_data(self):
        """Remove sample restaurants and their users; ledger rows cascade."""
        names = [config['name'] for config in RESTAURANTS]
        User.objects.filter(restaurant__name__in=names).delete()
        Restaurant.objects.filter(name__in=names).delete()

    def create_restaurant(self, config):
        config = dict(config)
        slug = config.pop('slug')
        rewards = config.pop('rewards')

        restaurant, created = Restaurant.objects.get_or_create(name=config.pop('name'), defaults=config)
        self.stdout.write(f'  {"Created" if created else "Found"} restaurant: {restaurant}')

        admin = self.get_or_create_user(f'admin@{slug}.example.com', restaurant, UserRole.ADMIN)
        customers = [
            self.get_or_create_user(f'{name}@{slug}.example.com', restaurant, UserRole.CUSTOMER)
            for name in CUSTOMERS
        ]

        for reward in rewards:
            Reward.objects.get_or_create(restaurant=restaurant, title=reward['title'], defaults=reward)

        return restaurant, admin, customers

    def get_or_create_user(self, email, restaurant, role):
        user = User.objects.filter(email=email).first()
        if user is None:
            user = User.objects.create_user(
                email=email,
                password=SAMPLE_PASSWORD,
                full_name=email.split('@')[0].title(),
                restaurant=restaurant,
                role=role,
            )
            self.stdout.write(f'    Created {role}: {email}')
        return user

    def create_activity(self, restaurant, admin, customers):
        """Record a few purchases and redemptions for each customer."""
        if restaurant.transactions.exists():
            self.stdout.write(self.style.WARNING('    Activity already recorded, skipping'))
            return

        engine = LedgerEngine(restaurant)
        reward = restaurant.rewards.order_by('required_points', 'required_stamps').first()

        if restaurant.is_stamp_mode:
            # One stamp day per customer is all the cap allows today
            for customer in customers:
                engine.record_transaction(
                    customer_id=customer.pk,
                    amount=Decimal('75000'),
                    performed_by=admin,
                )
            engine.adjust_balance(
                customer_id=customers[0].pk,
                amount=4,
                direction='add',
                performed_by=admin,
                note='Stamps carried over from paper card',
            )
        else:
            for index, customer in enumerate(customers):
                engine.record_transaction(
                    customer_id=customer.pk,
                    amount=Decimal('25000') * (index + 2),
                    performed_by=admin,
                )

        redemption = engine.create_redemption(customer_id=customers[0].pk, reward_id=reward.pk)
        engine.verify_redemption(code=redemption.redemption_code, verified_by=admin)

        for customer in customers:
            balance = engine.get_balance(customer_id=customer.pk)
            self.stdout.write(f'    {customer.email}: {balance}')
