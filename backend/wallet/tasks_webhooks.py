"""Stripe webhook handler implementations for wallet top-ups."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from wallet.observability.logging import log_wallet_event
from wallet.services.ledger import WalletService
from wallet.services.stripe_payments import to_minor_units

logger = logging.getLogger(__name__)


class WebhookProcessingError(Exception):
    """Raised when an event cannot be applied and retrying will not help."""


@dataclass(frozen=True)
class HandlerResult:
    """Outcome of a webhook handler invocation."""

    status: str
    detail: str = ""
    user_id: Optional[str] = None

    PROCESSED = "processed"
    IGNORED = "ignored"


def dispatch_event(*, event_id: str, event_type: str, payload: Dict[str, Any], received_at: datetime) -> HandlerResult:
    """Route a Stripe webhook event to its dedicated handler."""

    handler = {
        "checkout.session.completed": _handle_checkout_session_completed,
        "checkout.session.async_payment_succeeded": _handle_checkout_payment_succeeded,
        "checkout.session.async_payment_failed": _handle_checkout_session_failed,
        "checkout.session.expired": _handle_checkout_session_failed,
        "payment_intent.payment_failed": _handle_payment_intent_failed,
    }.get(event_type)

    if handler is None:
        logger.info("Ignoring unsupported Stripe event type '%s'.", event_type)
        return HandlerResult(status=HandlerResult.IGNORED, detail="Unsupported event type")

    return handler(event_id=event_id, payload=payload, received_at=received_at)


def _event_object(payload: Dict[str, Any]) -> Dict[str, Any]:
    obj = (payload.get("data") or {}).get("object") or {}
    if not isinstance(obj, dict):
        raise WebhookProcessingError("Stripe event is missing data.object.")
    return obj


def _session_user_hint(session: Dict[str, Any]) -> Optional[str]:
    metadata = session.get("metadata") or {}
    return session.get("client_reference_id") or metadata.get("userId")


def _handle_checkout_session_completed(*, event_id: str, payload: Dict[str, Any], received_at: datetime) -> HandlerResult:
    session = _event_object(payload)
    # Delayed payment methods complete the session before the money arrives;
    # async_payment_succeeded follows once it does.
    if (session.get("payment_status") or "paid") == "unpaid":
        logger.info("Checkout session %s completed without payment yet; awaiting async result.", session.get("id"))
        return HandlerResult(status=HandlerResult.IGNORED, detail="awaiting_async_payment")
    return _settle_session(event_id=event_id, session=session)


def _handle_checkout_payment_succeeded(*, event_id: str, payload: Dict[str, Any], received_at: datetime) -> HandlerResult:
    return _settle_session(event_id=event_id, session=_event_object(payload))


def _settle_session(*, event_id: str, session: Dict[str, Any]) -> HandlerResult:
    session_id = session.get("id")
    if not session_id:
        raise WebhookProcessingError("Checkout session payload has no id.")

    settlement = WalletService().complete_checkout(
        session_id=session_id,
        payment_intent_id=session.get("payment_intent") or None,
        event_id=event_id,
    )

    if settlement is None:
        logger.warning(
            "No wallet transaction for checkout session %s (user hint %s); dropping event %s.",
            session_id,
            _session_user_hint(session),
            event_id,
        )
        return HandlerResult(status=HandlerResult.IGNORED, detail="transaction_not_found")

    record = settlement.transaction
    if not settlement.credited:
        return HandlerResult(
            status=HandlerResult.IGNORED,
            detail=f"already_{record.status}",
            user_id=str(record.user_id),
        )

    amount_total = session.get("amount_total")
    if amount_total is not None and amount_total != to_minor_units(record.amount):
        logger.warning(
            "Checkout session %s charged %s minor units but transaction %s expects %s.",
            session_id,
            amount_total,
            record.id,
            to_minor_units(record.amount),
        )

    log_wallet_event(
        message="wallet.checkout_credited",
        user_id=record.user_id,
        currency=record.currency,
        actor="stripe.webhook",
        extra={"amount": str(record.amount), "session_id": session_id, "event_id": event_id},
    )
    return HandlerResult(
        status=HandlerResult.PROCESSED,
        detail=f"Credited {record.amount} {record.currency}",
        user_id=str(record.user_id),
    )


def _handle_checkout_session_failed(*, event_id: str, payload: Dict[str, Any], received_at: datetime) -> HandlerResult:
    session = _event_object(payload)
    session_id = session.get("id")
    if not session_id:
        raise WebhookProcessingError("Checkout session payload has no id.")

    record = WalletService().fail_checkout(session_id=session_id, reason=payload.get("type") or "")
    if record is None:
        logger.warning("No wallet transaction for failed checkout session %s.", session_id)
        return HandlerResult(status=HandlerResult.IGNORED, detail="transaction_not_found")

    return HandlerResult(
        status=HandlerResult.PROCESSED,
        detail=f"Transaction {record.status}",
        user_id=str(record.user_id),
    )


def _handle_payment_intent_failed(*, event_id: str, payload: Dict[str, Any], received_at: datetime) -> HandlerResult:
    intent = _event_object(payload)
    intent_id = intent.get("id")
    if not intent_id:
        raise WebhookProcessingError("Payment intent payload has no id.")

    failure = (intent.get("last_payment_error") or {}).get("message") or "payment_failed"
    record = WalletService().fail_payment_intent(payment_intent_id=intent_id, reason=failure)
    if record is None:
        logger.info("No wallet transaction references payment intent %s.", intent_id)
        return HandlerResult(status=HandlerResult.IGNORED, detail="transaction_not_found")

    return HandlerResult(
        status=HandlerResult.PROCESSED,
        detail=f"Transaction {record.status}",
        user_id=str(record.user_id),
    )
