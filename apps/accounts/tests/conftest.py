import pytest
from rest_framework.test import APIClient
from apps.accounts.models import User, UserRole
from apps.restaurants.models import Restaurant


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def restaurant(db):
    return Restaurant.objects.create(name='Accounts Test Restaurant')


@pytest.fixture
def user(db, restaurant):
    """Create and return a customer."""
    return User.objects.create_user(
        email='test@example.com',
        password='TestPass123!',
        full_name='Test User',
        restaurant=restaurant,
    )


@pytest.fixture
def admin_user(db, restaurant):
    """Create and return a restaurant administrator."""
    return User.objects.create_user(
        email='admin@example.com',
        password='TestPass123!',
        restaurant=restaurant,
        role=UserRole.ADMIN,
    )
