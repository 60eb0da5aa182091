"""Type-specific business details modelled as a closed set of variants.

Each :class:`~businesses.models.Business.BusinessType` maps to exactly one
frozen dataclass. ``BusinessDetails`` is the union of those variants, and
``_VARIANTS`` is checked at import time so adding a business type without a
matching variant fails immediately instead of at request time.
"""
from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Type, Union

from businesses.models import Business


class BusinessDetailsError(ValueError):
    """Raised when a details payload does not fit its business type."""


@dataclass(frozen=True)
class _CommonDetails:
    operating_hours: Optional[str] = None
    agent_instructions: Optional[str] = None
    ai_communication_style: Optional[str] = None
    greeting_message: Optional[str] = None
    special_instructions: Optional[str] = None


@dataclass(frozen=True)
class RestaurantDetails(_CommonDetails):
    menu_items: Optional[str] = None
    seating_capacity: Optional[int] = None
    cuisine_type: Optional[str] = None
    delivery_available: bool = False
    takeout_available: bool = False


@dataclass(frozen=True)
class RetailDetails(_CommonDetails):
    store_type: Optional[str] = None
    inventory_size: Optional[int] = None
    has_online_store: bool = False
    delivery_available: bool = False


@dataclass(frozen=True)
class ServiceDetails(_CommonDetails):
    service_type: Optional[str] = None
    service_area: Optional[str] = None
    is_mobile_service: bool = False
    requires_booking: bool = False


BusinessDetails = Union[RestaurantDetails, RetailDetails, ServiceDetails]

_VARIANTS: Dict[str, Type[_CommonDetails]] = {
    Business.BusinessType.RESTAURANT: RestaurantDetails,
    Business.BusinessType.RETAIL: RetailDetails,
    Business.BusinessType.SERVICE: ServiceDetails,
}

_missing = set(Business.BusinessType.values) - set(_VARIANTS)
if _missing:
    raise ImportError(f"No details variant registered for business types: {sorted(_missing)}")

_INT_FIELDS = {"seating_capacity", "inventory_size"}
_BOOL_FIELDS = {
    "delivery_available",
    "takeout_available",
    "has_online_store",
    "is_mobile_service",
    "requires_booking",
}


def parse_details(business_type: str, payload: Dict[str, Any]) -> BusinessDetails:
    """Build the details variant for ``business_type`` from a JSON payload."""

    variant = _VARIANTS.get(business_type)
    if variant is None:
        raise BusinessDetailsError(f"Unknown business type '{business_type}'.")
    if not isinstance(payload, dict):
        raise BusinessDetailsError("Business details must be an object.")

    allowed = {field.name for field in fields(variant)}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise BusinessDetailsError(
            f"Fields {', '.join(unknown)} are not valid for a {business_type} business."
        )

    values: Dict[str, Any] = {}
    for key, value in payload.items():
        if value is None:
            values[key] = None
        elif key in _INT_FIELDS:
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise BusinessDetailsError(f"{key} must be a non-negative integer.")
            values[key] = value
        elif key in _BOOL_FIELDS:
            if not isinstance(value, bool):
                raise BusinessDetailsError(f"{key} must be a boolean.")
            values[key] = value
        else:
            values[key] = str(value)
    return variant(**values)


def greeting_for(details: BusinessDetails) -> Optional[str]:
    greeting = (details.greeting_message or "").strip()
    return greeting or None
