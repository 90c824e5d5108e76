"""
Food-safety bands for delivered meals.

Classification is advisory: it is shown to operators and used for alerts,
never to block a delivery or schedule transition.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

SAFE = "SAFE"
WARNING = "WARNING"
DANGER = "DANGER"

_RANK = {SAFE: 0, WARNING: 1, DANGER: 2}

# (safe_low, safe_high, warning_low, warning_high), inclusive, in °C
BANDS = {
    "HOT": (Decimal("60"), Decimal("85"), Decimal("55"), Decimal("90")),
    "COLD": (Decimal("0"), Decimal("5"), Decimal("-2"), Decimal("8")),
}


def _dec(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps 59.9 from turning into 59.899999...
    return Decimal(str(value))


def classify(temp, food_type: str) -> str:
    try:
        safe_lo, safe_hi, warn_lo, warn_hi = BANDS[food_type]
    except KeyError:
        raise ValueError(f"Unknown food type: {food_type!r}")
    t = _dec(temp)
    if safe_lo <= t <= safe_hi:
        return SAFE
    if warn_lo <= t <= warn_hi:
        return WARNING
    return DANGER


def temperature_change(departure=None, arrival=None, serving=None) -> Optional[Decimal]:
    """Serving minus the first known earlier reading (departure, else arrival)."""
    if serving is None:
        return None
    baseline = departure if departure is not None else arrival
    if baseline is None:
        return None
    return _dec(serving) - _dec(baseline)


def overall_level(readings: Iterable, food_type: str) -> Optional[str]:
    """Worst classification over the readings that exist; None when there are none."""
    levels = [classify(r, food_type) for r in readings if r is not None]
    if not levels:
        return None
    return max(levels, key=_RANK.__getitem__)
