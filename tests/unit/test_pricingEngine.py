"""
Unit tests for the Pricing Engine.

Fee split arithmetic (half-up rounding, fee + payout == price) and hire
price resolution against the configured override bounds.
"""

import pytest

from collabotree.core.config import settings
from collabotree.core.exceptions import ValidationError
from collabotree.services.pricingEngine import compute_fee_split, resolve_hire_price


class TestComputeFeeSplit:

    def test_default_rate_is_ten_percent(self):
        split = compute_fee_split(10000)
        assert split.platform_fee_cents == 1000
        assert split.student_payout_cents == 9000

    def test_half_cent_rounds_up(self):
        # 10% of 5 cents is 0.5 cents
        split = compute_fee_split(5, fee_bps=1000)
        assert split.platform_fee_cents == 1
        assert split.student_payout_cents == 4

    def test_below_half_rounds_down(self):
        split = compute_fee_split(14, fee_bps=1000)
        assert split.platform_fee_cents == 1
        assert split.student_payout_cents == 13

    def test_zero_price(self):
        split = compute_fee_split(0)
        assert split.platform_fee_cents == 0
        assert split.student_payout_cents == 0

    @pytest.mark.parametrize("bps", [0, 250, 1000, 1750, 10000])
    def test_parts_always_sum_to_price(self, bps):
        for price in list(range(0, 500)) + [99_999, 123_457, 10_000_000]:
            split = compute_fee_split(price, fee_bps=bps)
            assert split.platform_fee_cents + split.student_payout_cents == price
            assert 0 <= split.platform_fee_cents <= price

    def test_full_rate_takes_everything(self):
        split = compute_fee_split(4321, fee_bps=10000)
        assert split.platform_fee_cents == 4321
        assert split.student_payout_cents == 0

    def test_negative_price_rejected(self):
        with pytest.raises(ValueError):
            compute_fee_split(-1)

    @pytest.mark.parametrize("bps", [-1, 10001])
    def test_rate_out_of_range(self, bps):
        with pytest.raises(ValueError):
            compute_fee_split(100, fee_bps=bps)


class TestResolveHirePrice:

    def test_defaults_to_service_price(self):
        assert resolve_hire_price(2500) == 2500

    def test_override_within_bounds(self):
        assert resolve_hire_price(2500, 4000) == 4000

    def test_bounds_are_inclusive(self):
        assert resolve_hire_price(2500, settings.min_price_cents) == settings.min_price_cents
        assert resolve_hire_price(2500, settings.max_price_cents) == settings.max_price_cents

    @pytest.mark.parametrize(
        "override", [settings.min_price_cents - 1, settings.max_price_cents + 1]
    )
    def test_override_out_of_bounds(self, override):
        with pytest.raises(ValidationError) as exc_info:
            resolve_hire_price(2500, override)
        assert exc_info.value.details[0]["field"] == "price_cents"
