"""Celery tasks for Stripe event handling."""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from celery import shared_task
from django.db import IntegrityError, OperationalError, transaction
from django.utils import timezone

from wallet.errors import WalletError
from wallet.models import WebhookEventLog
from wallet.observability.metrics import WEBHOOK_EVENT_COUNT, WEBHOOK_PROCESSING_LATENCY
from wallet.tasks_webhooks import HandlerResult, WebhookProcessingError, dispatch_event

logger = logging.getLogger(__name__)


@shared_task(bind=True, queue="wallet", retry_backoff=True, max_retries=5)
def process_stripe_event_async(self, event_data: Dict[str, Any]) -> Dict[str, Any]:
    """Apply a verified Stripe event once, recording the outcome on its log entry."""

    event_id = event_data.get("id")
    event_type = event_data.get("type") or ""

    log_entry, already_processed = _reserve_event_log(event_id, event_type, event_data)
    if already_processed:
        logger.info(
            "Skipping Stripe event %s (%s); status=%s",
            event_id,
            event_type,
            log_entry.status if log_entry else "unknown",
        )
        return {"status": "skipped"}

    received_at = timezone.now()

    try:
        with WEBHOOK_PROCESSING_LATENCY.labels(event_type=event_type).time():
            with transaction.atomic():
                result = dispatch_event(
                    event_id=event_id or "",
                    event_type=event_type,
                    payload=event_data,
                    received_at=received_at,
                )
    except (WebhookProcessingError, WalletError) as exc:
        logger.warning("Webhook processing error for event %s: %s", event_id, exc)
        _mark_event_failed(log_entry, str(exc))
        WEBHOOK_EVENT_COUNT.labels(event_type=event_type, status="failed").inc()
        return {"status": "failed", "detail": str(exc)}
    except (IntegrityError, OperationalError) as exc:
        logger.warning("Database error processing Stripe event %s; retrying: %s", event_id, exc)
        _mark_event_failed(log_entry, str(exc))
        raise self.retry(exc=exc)
    except Exception as exc:
        logger.exception("Unexpected error processing Stripe event %s", event_id)
        _mark_event_failed(log_entry, str(exc))
        WEBHOOK_EVENT_COUNT.labels(event_type=event_type, status="error").inc()
        raise

    status = WebhookEventLog.Status.PROCESSED if result.status == HandlerResult.PROCESSED else WebhookEventLog.Status.IGNORED
    _mark_event_completed(log_entry, status)
    WEBHOOK_EVENT_COUNT.labels(event_type=event_type, status=result.status).inc()

    logger.info(
        "Processed Stripe event %s (%s): %s",
        event_id,
        event_type,
        result.detail or result.status,
    )

    return {"status": result.status, "detail": result.detail}


def _reserve_event_log(event_id: Optional[str], event_type: str, event_data: Dict[str, Any]):
    if not event_id:
        return None, False

    payload_hash = _hash_event_payload(event_data)

    with transaction.atomic():
        log_entry = WebhookEventLog.objects.select_for_update().filter(event_id=event_id).first()
        if log_entry:
            if log_entry.handled:
                return log_entry, True

            log_entry.event_type = event_type or log_entry.event_type
            log_entry.status = WebhookEventLog.Status.PROCESSING
            log_entry.last_error = ""
            log_entry.processed_at = None
            log_entry.payload_hash = payload_hash
            log_entry.payload = event_data
            log_entry.attempts = (log_entry.attempts or 0) + 1
            log_entry.save(
                update_fields=[
                    "event_type",
                    "status",
                    "last_error",
                    "processed_at",
                    "payload_hash",
                    "payload",
                    "attempts",
                ]
            )
            return log_entry, False

        log_entry = WebhookEventLog.objects.create(
            event_id=event_id,
            event_type=event_type,
            status=WebhookEventLog.Status.PROCESSING,
            payload_hash=payload_hash,
            payload=event_data,
            attempts=1,
        )
        return log_entry, False


def _mark_event_completed(log_entry: Optional[WebhookEventLog], status: str) -> None:
    if not log_entry:
        return

    log_entry.status = status
    log_entry.processed_at = timezone.now()
    log_entry.last_error = ""
    log_entry.handled = True
    log_entry.save(update_fields=["status", "processed_at", "last_error", "handled"])


def _mark_event_failed(log_entry: Optional[WebhookEventLog], error: str) -> None:
    if not log_entry:
        return

    log_entry.status = WebhookEventLog.Status.FAILED
    log_entry.last_error = error
    log_entry.processed_at = None
    log_entry.handled = False
    log_entry.save(update_fields=["status", "last_error", "processed_at", "handled"])


def _hash_event_payload(event_data: Dict[str, Any]) -> str:
    try:
        serialized = json.dumps(event_data, sort_keys=True, separators=(",", ":"))
    except TypeError:
        serialized = json.dumps(event_data, sort_keys=True, default=str)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@shared_task(queue="wallet")
def cleanup_webhook_event_logs(days: int = 30) -> int:
    """Remove handled webhook events older than ``days`` days."""

    cutoff = timezone.now() - timedelta(days=days)
    deleted, _ = WebhookEventLog.objects.filter(
        handled=True,
        processed_at__lt=cutoff,
    ).delete()

    logger.info("Cleaned up %s handled webhook events older than %s days.", deleted, days)
    return deleted
