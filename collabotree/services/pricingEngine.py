"""
Pricing Engine for CollaboTree.

Two responsibilities:

- Resolve the agreed price of a hire request: the buyer's override when
  given (bounded by ``min_price_cents`` / ``max_price_cents``), otherwise
  the service's listed price.
- Split a contract price into the platform fee and the student payout.

Fee rule: ``fee = price * platform_fee_bps / 10000`` rounded half-up to
the whole cent; ``payout = price - fee``. The payout is derived by
subtraction, so ``fee + payout == price`` for every price.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from collabotree.core.config import settings
from collabotree.core.exceptions import ValidationError

BPS_DENOMINATOR = Decimal("10000")


@dataclass(frozen=True)
class FeeSplit:
    price_cents: int
    platform_fee_cents: int
    student_payout_cents: int


def compute_fee_split(price_cents: int, fee_bps: Optional[int] = None) -> FeeSplit:
    """Split ``price_cents`` into platform fee and student payout.

    Args:
        price_cents: Contract price in cents (non-negative).
        fee_bps: Fee in basis points; defaults to ``settings.platform_fee_bps``.

    Raises:
        ValueError: If the price is negative or the rate is outside 0-10000.
    """
    if price_cents < 0:
        raise ValueError(f"price_cents must be non-negative, got {price_cents}")
    bps = settings.platform_fee_bps if fee_bps is None else fee_bps
    if not 0 <= bps <= 10000:
        raise ValueError(f"fee_bps must be between 0 and 10000, got {bps}")

    fee = int(
        (Decimal(price_cents) * Decimal(bps) / BPS_DENOMINATOR)
        .quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return FeeSplit(
        price_cents=price_cents,
        platform_fee_cents=fee,
        student_payout_cents=price_cents - fee,
    )


def resolve_hire_price(
    service_price_cents: int,
    override_cents: Optional[int] = None,
) -> int:
    """Return the price a hire request is negotiated at.

    Raises:
        ValidationError: If an override falls outside the configured bounds.
    """
    if override_cents is None:
        return service_price_cents

    if not settings.min_price_cents <= override_cents <= settings.max_price_cents:
        raise ValidationError(
            "Price override is out of range",
            details=[{
                "field": "price_cents",
                "message": (
                    f"Must be between {settings.min_price_cents} and "
                    f"{settings.max_price_cents} cents"
                ),
            }],
        )
    return override_cents
