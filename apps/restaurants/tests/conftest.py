import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User, UserRole
from apps.restaurants.models import Restaurant


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
    """Create and return a restaurant with default ratios."""
    return Restaurant.objects.create(name='Warung Config')


@pytest.fixture
def restaurant_admin(db, restaurant):
    """Create and return the restaurant's administrator."""
    return User.objects.create_user(
        email='owner@example.com',
        password='TestPass123!',
        restaurant=restaurant,
        role=UserRole.ADMIN,
    )


@pytest.fixture
def restaurant_customer(db, restaurant):
    """Create and return a customer of the restaurant."""
    return User.objects.create_user(
        email='guest@example.com',
        password='TestPass123!',
        restaurant=restaurant,
        role=UserRole.CUSTOMER,
    )


@pytest.fixture
def unaffiliated_user(db):
    """Create and return a user without a restaurant."""
    return User.objects.create_user(
        email='nobody@example.com',
        password='TestPass123!',
    )


@pytest.fixture
def admin_client(restaurant_admin):
    return client_for(restaurant_admin)


@pytest.fixture
def customer_client(restaurant_customer):
    return client_for(restaurant_customer)


@pytest.fixture
def unaffiliated_client(unaffiliated_user):
    return client_for(unaffiliated_user)
