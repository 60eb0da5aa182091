"""Monthly USD prices for provider numbers by country and number type."""
from __future__ import annotations

from decimal import Decimal
from typing import Dict, Optional

from phone_numbers.errors import PricingUnavailable
from phone_numbers.models import PhoneNumber

NumberType = PhoneNumber.NumberType

ZERO = Decimal("0.00")
PRICE_CURRENCY = "USD"

_NORTH_AMERICA = {
    NumberType.LOCAL: Decimal("1.50"),
    NumberType.TOLL_FREE: Decimal("3.00"),
    NumberType.MOBILE: Decimal("2.00"),
    NumberType.INTERNATIONAL: Decimal("1.50"),
    NumberType.VANITY: Decimal("1.50"),
}

MONTHLY_PRICES: Dict[str, Dict[str, Decimal]] = {
    "US": _NORTH_AMERICA,
    "CA": _NORTH_AMERICA,
    "GB": {
        NumberType.LOCAL: Decimal("2.25"),
        NumberType.TOLL_FREE: Decimal("4.00"),
        NumberType.MOBILE: Decimal("3.00"),
        NumberType.INTERNATIONAL: Decimal("2.25"),
        NumberType.VANITY: Decimal("2.25"),
    },
}

SUPPORTED_COUNTRIES = tuple(MONTHLY_PRICES)

# Client-facing spellings accepted in addition to the stored values.
_TYPE_ALIASES = {
    "tollFree": NumberType.TOLL_FREE,
    "toll-free": NumberType.TOLL_FREE,
}


def normalize_number_type(value: Optional[str]) -> Optional[str]:
    """Return the stored ``NumberType`` value for ``value``, or ``None`` if unknown."""

    raw = (value or "").strip()
    if raw in _TYPE_ALIASES:
        return _TYPE_ALIASES[raw].value
    lowered = raw.lower()
    return lowered if lowered in NumberType.values else None


def monthly_cost(country_code: Optional[str], number_type: Optional[str]) -> Decimal:
    """Price for one month, or zero when the combination is not sold."""

    prices = MONTHLY_PRICES.get((country_code or "").strip().upper())
    normalized_type = normalize_number_type(number_type)
    if prices is None or normalized_type is None:
        return ZERO
    return prices.get(normalized_type, ZERO)


def require_monthly_cost(country_code: Optional[str], number_type: Optional[str]) -> Decimal:
    cost = monthly_cost(country_code, number_type)
    if cost <= ZERO:
        raise PricingUnavailable(f"Pricing not available for {number_type} numbers in {country_code}.")
    return cost
