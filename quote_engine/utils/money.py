from decimal import Decimal, ROUND_HALF_UP

_CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to whole pence.

    Goes through ``str`` so binary float noise (e.g. ``1.005``) rounds the way
    the amount is written, not the way it is stored.
    """
    return float(Decimal(str(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
