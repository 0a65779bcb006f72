"""Pricing-related constants."""

from typing import Final


class Pricing:
    """Rates and rounding used by the price breakdown."""

    # Flat rate charged per hour of driver wait time
    WAIT_RATE_PER_HOUR: Final[float] = 50.0
    CURRENCY: Final[str] = "GBP"
    DECIMAL_PLACES: Final[int] = 2
    REFERENCE_PREFIX: Final[str] = "SDS"
