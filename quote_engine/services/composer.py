"""Builds price breakdowns whose lines always add up to the total.

Every line is rounded to pence before it is summed, so the figures a customer
sees on screen reproduce the total exactly.
"""

import logging
from typing import Optional

from quote_engine.core.config import settings
from quote_engine.core.errors import InvariantViolationError
from quote_engine.schemas.quote import PriceBreakdown
from quote_engine.utils.money import round2

logger = logging.getLogger(__name__)

TOLERANCE = 0.001


def compose_breakdown(
    base_fee: float,
    distance_fee: float,
    volume_fee: float,
    service_fee: float,
    additional_fees: float,
    distance_miles: float = 0.0,
    vat_rate: Optional[float] = None,
) -> PriceBreakdown:
    if vat_rate is None:
        vat_rate = settings.VAT_RATE

    lines = {
        "base_fee": round2(base_fee),
        "distance_fee": round2(distance_fee),
        "volume_fee": round2(volume_fee),
        "service_fee": round2(service_fee),
        "additional_fees": round2(additional_fees),
    }
    for name, amount in lines.items():
        if amount < 0:
            raise InvariantViolationError(f"{name} is negative: {amount}")

    subtotal = round2(sum(lines.values()))
    vat = round2(subtotal * vat_rate)
    total = round2(subtotal + vat)

    breakdown = PriceBreakdown(
        **lines,
        vat=vat,
        total=total,
        distance_miles=round2(distance_miles),
    )
    check_invariants(breakdown, vat_rate)
    return breakdown


def fallback_breakdown(total_volume: float, distance_miles: float = 0.0) -> PriceBreakdown:
    """Flat provisional price used when the oracle cannot be reached."""
    return compose_breakdown(
        base_fee=settings.FALLBACK_BASE_FEE,
        distance_fee=0.0,
        volume_fee=total_volume * settings.FALLBACK_VOLUME_RATE_PER_M3,
        service_fee=settings.FALLBACK_SERVICE_FEE,
        additional_fees=0.0,
        distance_miles=distance_miles,
    )


def check_invariants(breakdown: PriceBreakdown, vat_rate: Optional[float] = None) -> None:
    if vat_rate is None:
        vat_rate = settings.VAT_RATE

    subtotal = breakdown.subtotal
    expected_vat = round2(subtotal * vat_rate)
    if abs(breakdown.vat - expected_vat) > TOLERANCE:
        raise InvariantViolationError(
            f"vat {breakdown.vat} does not match {vat_rate:.0%} of subtotal {subtotal}"
        )
    if abs(subtotal + breakdown.vat - breakdown.total) > TOLERANCE:
        raise InvariantViolationError(
            f"subtotal {subtotal} + vat {breakdown.vat} != total {breakdown.total}"
        )
