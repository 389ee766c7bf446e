import pytest
from decimal import Decimal
from apps.restaurants.models import Restaurant, LoyaltyMode
from apps.loyalty.services.earn_policy import (
    check_daily_cap,
    compute_earned,
    split_units,
    to_amount,
)
from apps.loyalty.services import InvalidAmountError, InvalidConfigurationError


def make_restaurant(**kwargs):
    """Unsaved restaurant with the default ratios."""
    return Restaurant(name='Policy Test', **kwargs)


class TestComputeEarned:
    """Tests for compute_earned()"""

    def test_exactly_one_ratio_step_earns_one(self):
        """Amount equal to the ratio amount earns exactly one unit."""
        restaurant = make_restaurant(points_ratio_amount=Decimal('10000.00'))
        assert compute_earned(Decimal('10000'), restaurant) == 1

    def test_one_cent_below_ratio_earns_zero(self):
        """Zero units is a valid result, not an error."""
        restaurant = make_restaurant(points_ratio_amount=Decimal('10000.00'))
        assert compute_earned(Decimal('9999.99'), restaurant) == 0

    def test_floors_partial_steps(self):
        restaurant = make_restaurant(points_ratio_amount=Decimal('10000.00'))
        assert compute_earned(Decimal('25000'), restaurant) == 2

    def test_multiplies_by_ratio_units(self):
        restaurant = make_restaurant(
            points_ratio_amount=Decimal('10000.00'),
            points_ratio_points=5,
        )
        assert compute_earned(Decimal('30000'), restaurant) == 15

    def test_uses_stamp_ratio_in_stamp_mode(self):
        restaurant = make_restaurant(
            loyalty_mode=LoyaltyMode.STAMPS,
            stamp_ratio_amount=Decimal('50000.00'),
            stamp_ratio_stamps=1,
        )
        assert compute_earned(Decimal('120000'), restaurant) == 2

    def test_accepts_strings_and_floats(self):
        restaurant = make_restaurant()
        assert compute_earned('20000', restaurant) == 2
        assert compute_earned(20000.0, restaurant) == 2

    @pytest.mark.parametrize('amount', [Decimal('0'), Decimal('-1'), '-0.01'])
    def test_rejects_non_positive_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            compute_earned(amount, make_restaurant())

    @pytest.mark.parametrize('amount', ['abc', None, 'NaN', 'Infinity'])
    def test_rejects_non_numeric_amount(self, amount):
        with pytest.raises(InvalidAmountError):
            compute_earned(amount, make_restaurant())

    def test_rejects_zero_ratio(self):
        restaurant = make_restaurant(points_ratio_amount=Decimal('0'))
        with pytest.raises(InvalidConfigurationError):
            compute_earned(Decimal('10000'), restaurant)


class TestDailyCap:
    """Tests for check_daily_cap()"""

    def test_points_mode_is_never_capped(self):
        restaurant = make_restaurant(loyalty_mode=LoyaltyMode.POINTS)
        assert check_daily_cap(restaurant, [object()]) is True

    def test_stamp_mode_allows_first_of_day(self):
        restaurant = make_restaurant(loyalty_mode=LoyaltyMode.STAMPS)
        assert check_daily_cap(restaurant, []) is True

    def test_stamp_mode_blocks_second_of_day(self):
        restaurant = make_restaurant(loyalty_mode=LoyaltyMode.STAMPS)
        assert check_daily_cap(restaurant, [object()]) is False

    def test_flag_lifts_the_cap(self):
        restaurant = make_restaurant(
            loyalty_mode=LoyaltyMode.STAMPS,
            allow_multiple_stamps_per_day=True,
        )
        assert check_daily_cap(restaurant, [object()]) is True


def test_split_units_follows_mode():
    assert split_units(3, make_restaurant(loyalty_mode=LoyaltyMode.POINTS)) == (3, 0)
    assert split_units(3, make_restaurant(loyalty_mode=LoyaltyMode.STAMPS)) == (0, 3)


def test_to_amount_keeps_float_digits():
    """Floats go through str() so 0.1 stays 0.1."""
    assert to_amount(0.1) == Decimal('0.1')


@pytest.mark.parametrize('value', [Decimal('0.001'), '12.345', 0.005])
def test_to_amount_rejects_sub_cent_values(value):
    with pytest.raises(InvalidAmountError):
        to_amount(value)


@pytest.mark.parametrize('value', [Decimal('1e11'), '10000000000', Decimal('1e40')])
def test_to_amount_rejects_values_over_twelve_digits(value):
    with pytest.raises(InvalidAmountError):
        to_amount(value)


def test_to_amount_quantizes_to_cents():
    assert to_amount('9999999999.99') == Decimal('9999999999.99')
    assert str(to_amount(5)) == '5.00'
