"""Structured logging helper for wallet ledger and payment events."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("wallet")


def log_wallet_event(*, message: str, user_id: Optional[Any] = None, currency: Optional[str] = None,
                     actor: Optional[str] = None, extra: Optional[Dict[str, Any]] = None) -> None:
    payload: Dict[str, Any] = {"message": message}
    if user_id is not None:
        payload["user_id"] = str(user_id)
    if currency:
        payload["currency"] = currency
    if actor:
        payload["actor"] = actor
    if extra:
        payload.update(extra)
    logger.info(payload)
