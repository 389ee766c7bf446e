import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status
from apps.restaurants.models import LoyaltyMode


@pytest.mark.django_db
class TestCurrentRestaurant:
    """Tests for /api/restaurants/current/"""

    def test_member_reads_configuration(self, customer_client, restaurant):
        response = customer_client.get(reverse('restaurants:current'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['name'] == restaurant.name
        assert response.data['loyalty_mode'] == LoyaltyMode.POINTS
        assert response.data['unit_name'] == 'points'
        assert response.data['max_redemptions_per_day'] is None

    def test_admin_switches_to_stamps(self, admin_client, restaurant):
        response = admin_client.patch(
            reverse('restaurants:current'),
            {'loyalty_mode': LoyaltyMode.STAMPS, 'allow_multiple_stamps_per_day': True},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data['unit_name'] == 'stamps'
        restaurant.refresh_from_db()
        assert restaurant.is_stamp_mode
        assert restaurant.allow_multiple_stamps_per_day is True

    def test_admin_updates_ratio(self, admin_client, restaurant):
        response = admin_client.patch(
            reverse('restaurants:current'),
            {'points_ratio_amount': '5000.00', 'points_ratio_points': 2},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        restaurant.refresh_from_db()
        assert restaurant.get_ratio() == (Decimal('5000.00'), 2)

    def test_zero_ratio_is_rejected(self, admin_client):
        response = admin_client.patch(
            reverse('restaurants:current'),
            {'points_ratio_amount': '0'},
            format='json',
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_customer_cannot_update(self, customer_client, restaurant):
        response = customer_client.patch(
            reverse('restaurants:current'),
            {'name': 'Renamed'},
            format='json',
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        restaurant.refresh_from_db()
        assert restaurant.name == 'Warung Config'

    def test_user_without_restaurant(self, unaffiliated_client):
        response = unaffiliated_client.get(reverse('restaurants:current'))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unauthenticated(self, api_client):
        response = api_client.get(reverse('restaurants:current'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
