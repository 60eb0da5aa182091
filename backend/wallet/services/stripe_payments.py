"""Stripe checkout and webhook helpers for wallet top-ups."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
from urllib.parse import urljoin

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)

TOPUP_PRODUCT_NAME = "Wallet Top-up"


class StripeConfigurationError(RuntimeError):
    """Raised when mandatory Stripe configuration is missing."""


class StripeServiceError(RuntimeError):
    """Raised when Stripe returns an operational error."""


class StripeWebhookSignatureError(StripeServiceError):
    """Raised when webhook signature validation fails."""


def _configure_stripe() -> None:
    secret_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    if not secret_key:
        raise StripeConfigurationError("STRIPE_SECRET_KEY is not configured.")

    stripe.api_key = secret_key
    api_version = getattr(settings, "STRIPE_API_VERSION", None)
    if api_version:
        stripe.api_version = api_version


def _build_public_url(path: str) -> str:
    base_url = getattr(settings, "APP_PUBLIC_BASE_URL", "")
    if not base_url:
        raise StripeConfigurationError("APP_PUBLIC_BASE_URL must be configured.")
    normalized_base = base_url if base_url.endswith("/") else f"{base_url}/"
    return urljoin(normalized_base, path.lstrip("/"))


def _stringify_metadata(values: Dict[str, Any]) -> Dict[str, str]:
    return {key: "" if value is None else str(value) for key, value in values.items()}


def to_minor_units(amount: Decimal) -> int:
    """Convert a two-place USD/INR amount to Stripe's integer minor units."""

    return int((amount * 100).to_integral_value())


def stripe_object_to_dict(obj: Any) -> Dict[str, Any]:
    if type(obj) is dict:
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        converter = getattr(obj, attr, None)
        if callable(converter):
            return converter()
    return dict(obj)


def create_checkout_session(
    *,
    success_url: str,
    cancel_url: str,
    line_items: Iterable[Dict[str, Any]],
    mode: str = "payment",
    metadata: Optional[Dict[str, Any]] = None,
    client_reference_id: Optional[str] = None,
    customer_email: Optional[str] = None,
) -> Dict[str, Any]:
    """Wrapper around ``stripe.checkout.Session.create`` with consistent error handling."""

    _configure_stripe()

    options: Dict[str, Any] = {
        "success_url": success_url,
        "cancel_url": cancel_url,
        "mode": mode,
        "line_items": list(line_items),
        "payment_method_types": ["card"],
    }

    if metadata:
        options["metadata"] = _stringify_metadata(metadata)
    if client_reference_id:
        options["client_reference_id"] = str(client_reference_id)
    if customer_email:
        options["customer_email"] = customer_email

    try:
        session = stripe.checkout.Session.create(**options)
    except stripe.error.StripeError as exc:
        logger.warning("Stripe checkout session creation failed: %s", exc)
        raise StripeServiceError(str(exc)) from exc

    return stripe_object_to_dict(session)


def create_wallet_topup_session(*, user, amount: Decimal, currency: str) -> Dict[str, Any]:
    """Open a hosted checkout page that tops up ``user``'s wallet by ``amount``."""

    success_url = _build_public_url("dashboard/funds") + "?session_id={CHECKOUT_SESSION_ID}&success=true"
    cancel_url = _build_public_url("dashboard/funds") + "?canceled=true"

    return create_checkout_session(
        success_url=success_url,
        cancel_url=cancel_url,
        line_items=[
            {
                "price_data": {
                    "currency": currency.lower(),
                    "product_data": {
                        "name": TOPUP_PRODUCT_NAME,
                        "description": f"Add {amount} {currency} to your wallet",
                    },
                    "unit_amount": to_minor_units(amount),
                },
                "quantity": 1,
            }
        ],
        metadata={
            "userId": user.pk,
            "amount": amount,
            "currency": currency,
            "type": "wallet_topup",
        },
        client_reference_id=str(user.pk),
        customer_email=getattr(user, "email", None) or None,
    )


def parse_event(payload: str, sig_header: str, secret: Optional[str] = None) -> stripe.Event:
    """Validate and deserialize a Stripe webhook payload."""

    if not sig_header:
        raise StripeWebhookSignatureError("Stripe-Signature header is missing.")

    webhook_secret = secret or getattr(settings, "STRIPE_WEBHOOK_SECRET", "")
    if not webhook_secret:
        raise StripeConfigurationError("STRIPE_WEBHOOK_SECRET is not configured.")

    try:
        return stripe.Webhook.construct_event(payload=payload, sig_header=sig_header, secret=webhook_secret)
    except stripe.error.SignatureVerificationError as exc:
        logger.warning("Stripe webhook signature verification failed: %s", exc)
        raise StripeWebhookSignatureError("Stripe webhook signature verification failed.") from exc
    except ValueError as exc:
        logger.error("Received malformed Stripe webhook payload: %s", exc)
        raise StripeServiceError("Malformed Stripe webhook payload.") from exc
