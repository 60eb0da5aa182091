"""Wallet ledger: the single point of truth for a user's spendable balance.

Every balance mutation locks the wallet row (``select_for_update``) inside
``transaction.atomic()`` and re-reads the balance under that lock, so a debit
can never be decided on a stale read. The database CHECK constraints on the
balances back this up.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Optional, Union

from django.db import DatabaseError, transaction

from wallet.errors import InsufficientBalance, InvalidAmount, InvalidTransition, UnsupportedCurrency
from wallet.models import Currency, Wallet, WalletTransaction
from wallet.observability.logging import log_wallet_event
from wallet.observability.metrics import LEDGER_OPERATION_COUNT
from wallet.services.cache import CacheKey, CacheKind, WalletCache

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")

AmountLike = Union[Decimal, int, str, float]


@dataclass(frozen=True)
class Balance:
    usd: Decimal
    inr: Decimal
    primary_currency: str
    updated_at: Optional[datetime] = None

    def for_currency(self, currency: str) -> Decimal:
        return self.usd if currency == Currency.USD else self.inr


@dataclass(frozen=True)
class CheckoutSettlement:
    transaction: WalletTransaction
    credited: bool
    balance: Optional[Balance] = None


def normalize_amount(amount: AmountLike) -> Decimal:
    """Return ``amount`` as a positive two-place Decimal or raise ``InvalidAmount``."""

    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Amount is required.")
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise InvalidAmount(f"Invalid amount: {amount!r}.") from exc
    if not value.is_finite():
        raise InvalidAmount(f"Invalid amount: {amount!r}.")
    value = value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    if value <= 0:
        raise InvalidAmount("Amount must be greater than zero.")
    return value


def normalize_currency(currency: Optional[str]) -> str:
    code = (currency or "").strip().upper()
    if code not in Currency.values:
        raise UnsupportedCurrency(f"Unsupported currency '{currency}'. Use one of {', '.join(Currency.values)}.")
    return code


class WalletService:
    """Reads and mutates wallets.

    Construct one per request or task; the only shared state is whatever the
    injected :class:`WalletCache` points at.
    """

    def __init__(self, *, cache: Optional[WalletCache] = None) -> None:
        self.cache = cache if cache is not None else WalletCache()

    # Reads -----------------------------------------------------------------

    def get_or_create_wallet(self, user) -> Wallet:
        key = CacheKey(CacheKind.WALLET, str(user.pk))
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        wallet, created = Wallet.objects.get_or_create(user=user)
        if created:
            log_wallet_event(message="wallet.created", user_id=user.pk, extra={"wallet_id": str(wallet.id)})
        self.cache.set(key, wallet)
        return wallet

    def get_balance(self, user) -> Balance:
        key = CacheKey(CacheKind.BALANCE, str(user.pk))
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        wallet, _ = Wallet.objects.get_or_create(user=user)
        balance = _snapshot(wallet)
        self.cache.set(key, balance)
        return balance

    def has_sufficient_balance(self, user, amount: AmountLike, currency: str) -> bool:
        """Compare against the matching-currency balance.

        A failing lookup denies the spend instead of raising; the authoritative
        check happens again under the row lock in :meth:`deduct_funds`.
        """

        normalized_amount = normalize_amount(amount)
        normalized_currency = normalize_currency(currency)
        try:
            balance = self.get_balance(user)
        except DatabaseError:
            logger.exception("Balance check failed for user %s; denying spend.", user.pk)
            return False
        return balance.for_currency(normalized_currency) >= normalized_amount

    # Mutations -------------------------------------------------------------

    def add_funds(self, user, amount: AmountLike, currency: str) -> Balance:
        normalized_amount = normalize_amount(amount)
        normalized_currency = normalize_currency(currency)
        field = Wallet.balance_field(normalized_currency)

        with transaction.atomic():
            wallet = self._lock_wallet(user)
            setattr(wallet, field, getattr(wallet, field) + normalized_amount)
            wallet.save(update_fields=[field, "updated_at"])

        self._invalidate(user.pk)
        LEDGER_OPERATION_COUNT.labels(operation="credit", currency=normalized_currency, result="ok").inc()
        log_wallet_event(
            message="wallet.funds_added",
            user_id=user.pk,
            currency=normalized_currency,
            extra={"amount": str(normalized_amount), "balance": str(getattr(wallet, field))},
        )
        return _snapshot(wallet)

    def deduct_funds(self, user, amount: AmountLike, currency: str, description: str = "") -> Balance:
        normalized_amount = normalize_amount(amount)
        normalized_currency = normalize_currency(currency)
        field = Wallet.balance_field(normalized_currency)

        with transaction.atomic():
            wallet = self._lock_wallet(user)
            available = getattr(wallet, field)
            if available < normalized_amount:
                LEDGER_OPERATION_COUNT.labels(
                    operation="debit", currency=normalized_currency, result="insufficient"
                ).inc()
                raise InsufficientBalance(
                    required=normalized_amount,
                    available=available,
                    currency=normalized_currency,
                )
            setattr(wallet, field, available - normalized_amount)
            wallet.save(update_fields=[field, "updated_at"])

        self._invalidate(user.pk)
        LEDGER_OPERATION_COUNT.labels(operation="debit", currency=normalized_currency, result="ok").inc()
        log_wallet_event(
            message="wallet.funds_deducted",
            user_id=user.pk,
            currency=normalized_currency,
            extra={
                "amount": str(normalized_amount),
                "balance": str(getattr(wallet, field)),
                "description": description,
            },
        )
        return _snapshot(wallet)

    # Transactions ----------------------------------------------------------

    def record_transaction(
        self,
        *,
        user,
        type: str,
        amount: AmountLike,
        currency: str,
        status: str = WalletTransaction.Status.PENDING,
        description: str = "",
        payment_method: str = "",
        stripe_checkout_session_id: Optional[str] = None,
        stripe_payment_id: Optional[str] = None,
        phone_number=None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> WalletTransaction:
        wallet = self.get_or_create_wallet(user)
        return WalletTransaction.objects.create(
            user=user,
            wallet_id=wallet.pk,
            type=type,
            amount=normalize_amount(amount),
            currency=normalize_currency(currency),
            status=status,
            description=description or "",
            payment_method=payment_method or "",
            stripe_checkout_session_id=stripe_checkout_session_id or None,
            stripe_payment_id=stripe_payment_id or None,
            phone_number=phone_number,
            metadata=metadata or {},
        )

    def mark_completed(self, record: WalletTransaction, *, stripe_payment_id: Optional[str] = None) -> WalletTransaction:
        updates = {"stripe_payment_id": stripe_payment_id} if stripe_payment_id else {}
        return self._transition(record, WalletTransaction.Status.COMPLETED, **updates)

    def mark_failed(self, record: WalletTransaction, *, reason: str = "") -> WalletTransaction:
        updates = {}
        if reason:
            updates["metadata"] = {**(record.metadata or {}), "failure_reason": reason}
        return self._transition(record, WalletTransaction.Status.FAILED, **updates)

    def mark_refunded(self, record: WalletTransaction) -> WalletTransaction:
        return self._transition(record, WalletTransaction.Status.REFUNDED)

    # Checkout settlement ---------------------------------------------------

    def complete_checkout(
        self,
        *,
        session_id: str,
        payment_intent_id: Optional[str] = None,
        event_id: Optional[str] = None,
    ) -> Optional[CheckoutSettlement]:
        """Credit the wallet for a completed checkout session, once.

        Returns ``None`` when no transaction references ``session_id``. A
        transaction that already left ``pending`` is reported with
        ``credited=False`` and the wallet is left untouched.
        """

        with transaction.atomic():
            record = (
                WalletTransaction.objects.select_for_update()
                .select_related("user")
                .filter(stripe_checkout_session_id=session_id)
                .first()
            )
            if record is None:
                return None

            if record.status != WalletTransaction.Status.PENDING:
                logger.info(
                    "Checkout session %s already settled with status=%s; not crediting again.",
                    session_id,
                    record.status,
                )
                return CheckoutSettlement(transaction=record, credited=False)

            if event_id:
                record.metadata = {**(record.metadata or {}), "stripe_event_id": event_id}
            self.mark_completed(record, stripe_payment_id=payment_intent_id)
            balance = self.add_funds(record.user, record.amount, record.currency)

        return CheckoutSettlement(transaction=record, credited=True, balance=balance)

    def fail_checkout(self, *, session_id: str, reason: str = "") -> Optional[WalletTransaction]:
        with transaction.atomic():
            record = (
                WalletTransaction.objects.select_for_update()
                .filter(stripe_checkout_session_id=session_id)
                .first()
            )
            return self._fail_if_pending(record, reason)

    def fail_payment_intent(self, *, payment_intent_id: str, reason: str = "") -> Optional[WalletTransaction]:
        with transaction.atomic():
            record = (
                WalletTransaction.objects.select_for_update()
                .filter(stripe_payment_id=payment_intent_id)
                .order_by("-created_at")
                .first()
            )
            return self._fail_if_pending(record, reason)

    # Internals -------------------------------------------------------------

    def _fail_if_pending(self, record: Optional[WalletTransaction], reason: str) -> Optional[WalletTransaction]:
        if record is None:
            return None
        if record.status != WalletTransaction.Status.PENDING:
            logger.info("Transaction %s is %s; leaving status unchanged.", record.id, record.status)
            return record
        return self.mark_failed(record, reason=reason)

    def _lock_wallet(self, user) -> Wallet:
        Wallet.objects.get_or_create(user=user)
        return Wallet.objects.select_for_update().get(user=user)

    def _transition(self, record: WalletTransaction, status: str, **updates) -> WalletTransaction:
        if not record.can_transition_to(status):
            raise InvalidTransition(record.status, status, transaction_id=str(record.id))
        record.status = status
        for field, value in updates.items():
            setattr(record, field, value)
        record.save(update_fields=["status", "metadata", "updated_at", *updates.keys()])
        return record

    def _invalidate(self, user_id) -> None:
        self.cache.invalidate_user(user_id)
        # A reader may repopulate the cache before the outer transaction commits.
        transaction.on_commit(lambda: self.cache.invalidate_user(user_id))


def _snapshot(wallet: Wallet) -> Balance:
    return Balance(
        usd=wallet.balance_usd,
        inr=wallet.balance_inr,
        primary_currency=wallet.currency,
        updated_at=wallet.updated_at,
    )
