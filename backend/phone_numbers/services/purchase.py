"""Buy and release phone numbers against the user's wallet.

A purchase allocates the number at the provider first, then writes the local
record, the wallet debit and the debit transaction in one database
transaction. If that transaction fails the provider number is released again,
so a failed purchase leaves neither a charge nor an orphaned allocation.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from businesses.models import Business
from phone_numbers.errors import (
    InsufficientBalance,
    InvalidAssignment,
    NotFound,
    NumbersError,
    PrimaryNumberInUse,
)
from phone_numbers.models import PhoneNumber
from phone_numbers.observability.metrics import NUMBER_PURCHASE_COUNT, NUMBER_RELEASE_COUNT
from phone_numbers.services.pricing import PRICE_CURRENCY, normalize_number_type, require_monthly_cost
from phone_numbers.services.providers import PurchasedNumber, TelephonyProvider, WebhookUrls, get_numbers_provider
from wallet.errors import WalletError
from wallet.models import WalletTransaction
from wallet.services.ledger import Balance, WalletService

logger = logging.getLogger(__name__)

DEFAULT_REFUND_WINDOW_DAYS = 30

_UNSET = object()


@dataclass(frozen=True)
class PurchaseResult:
    number: PhoneNumber
    transaction: WalletTransaction
    balance: Balance


@dataclass(frozen=True)
class ReleaseResult:
    phone_number: str
    refund: Dict[str, Any]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "message": f"Phone number {self.phone_number} released",
            "refund": self.refund,
        }


def numbers_for_user(user):
    """Numbers the user bought or that sit on one of their businesses."""

    return PhoneNumber.objects.filter(Q(user=user) | Q(business__owner=user))


class NumberPurchaseService:
    def __init__(
        self,
        *,
        wallet_service: Optional[WalletService] = None,
        provider: Optional[TelephonyProvider] = None,
    ) -> None:
        self.wallet = wallet_service if wallet_service is not None else WalletService()
        self.provider = provider if provider is not None else get_numbers_provider()

    def purchase(
        self,
        user,
        *,
        phone_number: str,
        display_name: str,
        country_code: str = "US",
        number_type: str = PhoneNumber.NumberType.LOCAL,
    ) -> PurchaseResult:
        country = (country_code or "US").strip().upper()
        kind = normalize_number_type(number_type) or number_type
        try:
            cost = require_monthly_cost(country, kind)
        except NumbersError:
            NUMBER_PURCHASE_COUNT.labels(result="pricing_unavailable").inc()
            raise

        if not self.wallet.has_sufficient_balance(user, cost, PRICE_CURRENCY):
            NUMBER_PURCHASE_COUNT.labels(result="insufficient_balance").inc()
            raise InsufficientBalance(
                required=cost,
                available=self._available_balance(user),
                currency=PRICE_CURRENCY,
            )

        base_url = getattr(settings, "TWILIO_WEBHOOK_BASE_URL", "") or getattr(settings, "APP_PUBLIC_BASE_URL", "")
        try:
            allocated = self.provider.purchase(
                phone_number,
                friendly_name=display_name,
                webhooks=WebhookUrls.for_base(base_url),
            )
        except NumbersError:
            NUMBER_PURCHASE_COUNT.labels(result="provider_error").inc()
            raise

        try:
            with transaction.atomic():
                number = PhoneNumber.objects.create(
                    user=user,
                    phone_number=allocated.phone_number or phone_number,
                    display_name=display_name,
                    country_code=country,
                    number_type=kind,
                    provider=self.provider.name or "twilio",
                    monthly_cost=cost,
                    purchase_date=timezone.now(),
                    features=allocated.features,
                    twilio_sid=allocated.sid,
                    twilio_account_sid=allocated.account_sid,
                    voice_url=allocated.voice_url,
                    sms_url=allocated.sms_url,
                    status_callback_url=allocated.status_callback,
                    capabilities=dict(allocated.capabilities),
                )
                balance = self.wallet.deduct_funds(
                    user,
                    cost,
                    PRICE_CURRENCY,
                    description=f"Phone number purchase: {number.phone_number}",
                )
                record = self.wallet.record_transaction(
                    user=user,
                    type=WalletTransaction.TransactionType.DEBIT,
                    amount=cost,
                    currency=PRICE_CURRENCY,
                    status=WalletTransaction.Status.COMPLETED,
                    description=f"Phone number purchase: {number.phone_number}",
                    payment_method="wallet",
                    phone_number=number,
                    metadata={"type": "phone_number_purchase", "phone_number_id": str(number.id)},
                )
        except Exception:
            logger.exception(
                "Recording purchase of %s for user %s failed; releasing provider number %s.",
                phone_number,
                user.pk,
                allocated.sid,
            )
            NUMBER_PURCHASE_COUNT.labels(result="rolled_back").inc()
            self._release_allocation(allocated)
            raise

        NUMBER_PURCHASE_COUNT.labels(result="completed").inc()
        logger.info("User %s bought %s for %s %s.", user.pk, number.phone_number, cost, PRICE_CURRENCY)
        return PurchaseResult(number=number, transaction=record, balance=balance)

    def release(self, user, number_id) -> ReleaseResult:
        """Refund and delete a number, then free it at the provider once committed.

        The row stays locked until the refund and the delete commit, so a
        concurrent release of the same number waits and then finds nothing.
        """

        with transaction.atomic():
            if not numbers_for_user(user).filter(pk=number_id).exists():
                raise NotFound("Phone number not found.")
            number = PhoneNumber.objects.select_for_update().filter(pk=number_id).first()
            if number is None:
                raise NotFound("Phone number not found.")

            if (
                number.is_primary
                and number.business_id
                and PhoneNumber.objects.filter(business_id=number.business_id).exclude(pk=number.pk).exists()
            ):
                raise PrimaryNumberInUse(
                    "Cannot release the primary number while the business has other numbers. "
                    "Set another number as primary first."
                )

            refund = self._refund(user, number)

            phone = number.phone_number
            sid = number.twilio_sid
            number.delete()
            if sid:
                transaction.on_commit(lambda: self._release_at_provider(phone, sid))

        NUMBER_RELEASE_COUNT.labels(refund="issued" if refund.get("issued") else "none").inc()
        logger.info("User %s released %s.", user.pk, phone)
        return ReleaseResult(phone_number=phone, refund=refund)

    def _release_at_provider(self, phone: str, sid: str) -> None:
        try:
            self.provider.release(sid)
        except NumbersError:
            # The local record is gone; the allocation can be cleaned up at the provider.
            logger.exception("Provider release of %s (%s) failed.", phone, sid)

    def update(
        self,
        user,
        number_id,
        *,
        display_name: Optional[str] = None,
        notes: Optional[str] = None,
        is_active: Optional[bool] = None,
        business_id=_UNSET,
        is_primary: Optional[bool] = None,
    ) -> PhoneNumber:
        """Edit a number's labels and business assignment.

        Marking a number primary clears the flag on every other number of the
        same business. Moving a number off a business drops its primary flag.
        """

        with transaction.atomic():
            if not numbers_for_user(user).filter(pk=number_id).exists():
                raise NotFound("Phone number not found.")
            number = PhoneNumber.objects.select_for_update().get(pk=number_id)

            if display_name is not None:
                number.display_name = display_name
            if notes is not None:
                number.notes = notes
            if is_active is not None:
                number.is_active = is_active

            if business_id is not _UNSET:
                if business_id is None:
                    number.business = None
                    number.is_primary = False
                else:
                    business = Business.objects.filter(pk=business_id, owner=user).first()
                    if business is None:
                        raise NotFound("Business not found.")
                    if business.pk != number.business_id:
                        number.is_primary = False
                    number.business = business

            if is_primary is not None:
                if is_primary and not number.business_id:
                    raise InvalidAssignment("Assign the number to a business before making it primary.")
                number.is_primary = is_primary

            if number.is_primary:
                PhoneNumber.objects.filter(business_id=number.business_id, is_primary=True).exclude(
                    pk=number.pk
                ).update(is_primary=False)

            number.save()
        return number

    def _refund(self, user, number: PhoneNumber) -> Dict[str, Any]:
        window_days = getattr(settings, "NUMBER_REFUND_WINDOW_DAYS", DEFAULT_REFUND_WINDOW_DAYS)
        amount: Decimal = number.monthly_cost or Decimal("0.00")
        if amount <= 0:
            return {"issued": False, "reason": "Nothing was charged for this number."}
        if number.purchase_date < timezone.now() - timedelta(days=window_days):
            return {"issued": False, "reason": f"Refund window of {window_days} days has passed."}

        try:
            with transaction.atomic():
                self.wallet.add_funds(user, amount, PRICE_CURRENCY)
                self.wallet.record_transaction(
                    user=user,
                    type=WalletTransaction.TransactionType.CREDIT,
                    amount=amount,
                    currency=PRICE_CURRENCY,
                    status=WalletTransaction.Status.COMPLETED,
                    description=f"Refund for phone number: {number.phone_number}",
                    payment_method="wallet",
                    phone_number=number,
                    metadata={"type": "phone_number_refund", "phone_number_id": str(number.id)},
                )
        except (WalletError, DatabaseError):
            logger.exception("Refund for %s to user %s failed; releasing without refund.", number.phone_number, user.pk)
            return {"issued": False, "reason": "Refund could not be processed."}

        return {"issued": True, "amount": str(amount), "currency": PRICE_CURRENCY}

    def _available_balance(self, user) -> Optional[Decimal]:
        try:
            return self.wallet.get_balance(user).for_currency(PRICE_CURRENCY)
        except DatabaseError:
            logger.exception("Could not read the balance of user %s.", user.pk)
            return None

    def _release_allocation(self, allocated: PurchasedNumber) -> None:
        try:
            self.provider.release(allocated.sid)
        except NumbersError:
            logger.exception("Could not release provider number %s after a failed purchase.", allocated.sid)
