import pytest
from decimal import Decimal
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserRole
from apps.restaurants.models import Restaurant, LoyaltyMode
from apps.loyalty.models import Reward
from apps.loyalty.services import LedgerEngine


def client_for(user):
    """Return an API client authenticated as ``user``."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def restaurant(db):
    """Points-mode restaurant: Rp10,000 -> 1 point."""
    return Restaurant.objects.create(
        name='Warung Test',
        loyalty_mode=LoyaltyMode.POINTS,
        points_ratio_amount=Decimal('10000.00'),
        points_ratio_points=1,
    )


@pytest.fixture
def stamp_restaurant(db):
    """Stamp-mode restaurant: Rp50,000 -> 1 stamp, one stamp day per customer."""
    return Restaurant.objects.create(
        name='Kopi Stamp',
        loyalty_mode=LoyaltyMode.STAMPS,
        stamp_ratio_amount=Decimal('50000.00'),
        stamp_ratio_stamps=1,
        allow_multiple_stamps_per_day=False,
    )


@pytest.fixture
def other_restaurant(db):
    """Create and return an unrelated restaurant."""
    return Restaurant.objects.create(name='Other Place')


@pytest.fixture
def customer(db, restaurant):
    """Create and return a customer of the points restaurant."""
    return User.objects.create_user(
        email='customer@example.com',
        password='TestPass123!',
        full_name='Test Customer',
        restaurant=restaurant,
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def other_customer(db, restaurant):
    """Create and return a second customer of the points restaurant."""
    return User.objects.create_user(
        email='customer2@example.com',
        password='TestPass123!',
        full_name='Second Customer',
        restaurant=restaurant,
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def stamp_customer(db, stamp_restaurant):
    """Create and return a customer of the stamp restaurant."""
    return User.objects.create_user(
        email='stamps@example.com',
        password='TestPass123!',
        full_name='Stamp Customer',
        restaurant=stamp_restaurant,
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def staff(db, restaurant):
    """Create and return an administrator of the points restaurant."""
    return User.objects.create_user(
        email='staff@example.com',
        password='TestPass123!',
        full_name='Restaurant Staff',
        restaurant=restaurant,
        role=UserRole.ADMIN,
    )


@pytest.fixture
def outsider(db, other_restaurant):
    """Create and return a customer of another restaurant."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        restaurant=other_restaurant,
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def reward(db, restaurant):
    """Reward costing 2 points."""
    return Reward.objects.create(
        restaurant=restaurant,
        title='Free Iced Tea',
        required_points=2,
    )


@pytest.fixture
def stamp_reward(db, stamp_restaurant):
    """Reward costing 1 stamp."""
    return Reward.objects.create(
        restaurant=stamp_restaurant,
        title='Free Coffee',
        required_stamps=1,
    )


@pytest.fixture
def audit_events():
    """List collecting events from a test audit sink."""
    return []


@pytest.fixture
def engine(restaurant):
    """Ledger engine for the points restaurant."""
    return LedgerEngine(restaurant)


@pytest.fixture
def stamp_engine(stamp_restaurant):
    """Ledger engine for the stamp restaurant."""
    return LedgerEngine(stamp_restaurant)


@pytest.fixture
def customer_client(customer):
    """Return API client authenticated as the customer."""
    return client_for(customer)


@pytest.fixture
def other_customer_client(other_customer):
    """Return API client authenticated as the second customer."""
    return client_for(other_customer)


@pytest.fixture
def staff_client(staff):
    """Return API client authenticated as restaurant staff."""
    return client_for(staff)


@pytest.fixture
def outsider_client(outsider):
    """Return API client authenticated as another restaurant's customer."""
    return client_for(outsider)


@pytest.fixture
def stamp_staff(db, stamp_restaurant):
    """Create and return an administrator of the stamp restaurant."""
    return User.objects.create_user(
        email='barista@example.com',
        password='TestPass123!',
        full_name='Stamp Staff',
        restaurant=stamp_restaurant,
        role=UserRole.ADMIN,
    )


@pytest.fixture
def stamp_staff_client(stamp_staff):
    """Return API client authenticated as stamp restaurant staff."""
    return client_for(stamp_staff)
