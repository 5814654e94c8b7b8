"""
Amount helpers.
"""

from __future__ import annotations

import random
from decimal import Decimal

from constructor.models import Currency


def random_number(rng: random.Random, minimum: int, maximum: int) -> int:
    """Draw a uniform integer from the inclusive range [minimum, maximum]."""
    if maximum < minimum:
        raise ValueError(f"maximum {maximum} is less than minimum {minimum}")
    return rng.randint(minimum, maximum)


def pretty_amount(amount: int, currency: Currency) -> str:
    """Format an atomic amount in whole units, e.g. 150000000 -> '1.50000000 BTC'."""
    value = Decimal(amount).scaleb(-currency.decimals)
    return f"{value:f} {currency.symbol}"
