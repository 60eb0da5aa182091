"""Telephony providers that search, allocate and release phone numbers.

``TwilioNumbersProvider`` talks to Twilio. ``MockNumbersProvider`` returns
fabricated numbers and never spends money; it is used whenever
``TWILIO_TESTING_MODE`` is on.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.conf import settings
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from phone_numbers.errors import NotConfigured, NumberUnavailable, ProviderFailure
from phone_numbers.models import PhoneNumber

logger = logging.getLogger(__name__)

NumberType = PhoneNumber.NumberType

DEFAULT_SEARCH_LIMIT = 20

TWILIO_NOT_FOUND = 20404
TWILIO_AUTH_FAILED = 20003
TWILIO_ADDRESS_REQUIRED = 21452
TWILIO_INSUFFICIENT_FUNDS = 21608

MOCK_ACCOUNT_SID = "AC" + "X" * 32


def _capabilities(raw: Optional[Dict[str, Any]]) -> Dict[str, bool]:
    # Twilio spells these "SMS"/"MMS" on available numbers and "sms"/"mms" on owned ones.
    values = {str(key).lower(): bool(value) for key, value in (raw or {}).items()}
    return {
        "voice": values.get("voice", True),
        "sms": values.get("sms", True),
        "mms": values.get("mms", False),
        "fax": values.get("fax", False),
    }


@dataclass(frozen=True)
class AvailableNumber:
    phone_number: str
    friendly_name: str
    iso_country: str
    capabilities: Dict[str, bool]
    locality: Optional[str] = None
    region: Optional[str] = None
    address_requirements: str = "none"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "phoneNumber": self.phone_number,
            "friendlyName": self.friendly_name,
            "locality": self.locality,
            "region": self.region,
            "isoCountry": self.iso_country,
            "capabilities": dict(self.capabilities),
            "addressRequirements": self.address_requirements,
        }


@dataclass(frozen=True)
class WebhookUrls:
    voice_url: str
    sms_url: str
    status_callback: str

    @classmethod
    def for_base(cls, base_url: str) -> "WebhookUrls":
        base = base_url.rstrip("/")
        return cls(
            voice_url=f"{base}/api/voice-agent/handle-call",
            sms_url=f"{base}/api/voice-agent/handle-sms",
            status_callback=f"{base}/api/voice-agent/status",
        )


@dataclass(frozen=True)
class PurchasedNumber:
    sid: str
    account_sid: str
    phone_number: str
    friendly_name: str
    capabilities: Dict[str, bool] = field(default_factory=dict)
    voice_url: str = ""
    sms_url: str = ""
    status_callback: str = ""

    @property
    def features(self) -> List[str]:
        return [name for name, enabled in self.capabilities.items() if enabled]


class TelephonyProvider(ABC):
    """Interface the purchase flow depends on."""

    name = ""

    @abstractmethod
    def search(
        self,
        country_code: str,
        number_type: str,
        *,
        area_code: Optional[str] = None,
        contains: Optional[str] = None,
        limit: int = DEFAULT_SEARCH_LIMIT,
    ) -> List[AvailableNumber]:
        raise NotImplementedError

    @abstractmethod
    def purchase(self, phone_number: str, *, friendly_name: str, webhooks: WebhookUrls) -> PurchasedNumber:
        raise NotImplementedError

    @abstractmethod
    def release(self, sid: str) -> None:
        raise NotImplementedError


def search_category(number_type: str) -> str:
    """Twilio only lists local, toll-free and mobile inventory; other types search local."""

    if number_type in (NumberType.TOLL_FREE, NumberType.MOBILE):
        return number_type
    return NumberType.LOCAL.value


class TwilioNumbersProvider(TelephonyProvider):
    name = "twilio"

    def __init__(self, account_sid: str, auth_token: str, *, client: Optional[Client] = None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            if not self.account_sid or not self.auth_token:
                raise NotConfigured("Twilio credentials are not configured.")
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def search(self, country_code, number_type, *, area_code=None, contains=None, limit=DEFAULT_SEARCH_LIMIT):
        country = self.client.available_phone_numbers(country_code)
        listing = {
            NumberType.LOCAL: country.local,
            NumberType.TOLL_FREE: country.toll_free,
            NumberType.MOBILE: country.mobile,
        }[search_category(number_type)]

        filters: Dict[str, Any] = {"limit": limit}
        if area_code:
            filters["area_code"] = area_code
        if contains:
            filters["contains"] = contains

        try:
            records = listing.list(**filters)
        except TwilioRestException as exc:
            logger.warning("Twilio number search failed for %s/%s: %s", country_code, number_type, exc)
            raise self._translate(exc, "Failed to search numbers") from exc

        return [
            AvailableNumber(
                phone_number=record.phone_number,
                friendly_name=record.friendly_name or record.phone_number,
                iso_country=record.iso_country or country_code,
                capabilities=_capabilities(record.capabilities),
                locality=record.locality or None,
                region=record.region or None,
                address_requirements=record.address_requirements or "none",
            )
            for record in records
        ]

    def purchase(self, phone_number, *, friendly_name, webhooks):
        try:
            record = self.client.incoming_phone_numbers.create(
                phone_number=phone_number,
                friendly_name=friendly_name,
                voice_url=webhooks.voice_url,
                voice_method="POST",
                sms_url=webhooks.sms_url,
                sms_method="POST",
                status_callback=webhooks.status_callback,
                status_callback_method="POST",
            )
        except TwilioRestException as exc:
            logger.warning("Twilio purchase of %s failed (code %s): %s", phone_number, exc.code, exc)
            if exc.code == TWILIO_NOT_FOUND:
                raise NumberUnavailable("Phone number is no longer available.") from exc
            raise self._translate(exc, "Failed to purchase number") from exc

        logger.info("Purchased Twilio number %s as %s.", record.phone_number, record.sid)
        return PurchasedNumber(
            sid=record.sid,
            account_sid=record.account_sid,
            phone_number=record.phone_number,
            friendly_name=record.friendly_name or friendly_name,
            capabilities=_capabilities(record.capabilities),
            voice_url=record.voice_url or "",
            sms_url=record.sms_url or "",
            status_callback=record.status_callback or "",
        )

    def release(self, sid):
        try:
            self.client.incoming_phone_numbers(sid).delete()
        except TwilioRestException as exc:
            if exc.code == TWILIO_NOT_FOUND:
                logger.warning("Twilio number %s not found; treating as already released.", sid)
                return
            raise self._translate(exc, "Failed to release number") from exc
        logger.info("Released Twilio number %s.", sid)

    @staticmethod
    def _translate(exc: TwilioRestException, prefix: str) -> Exception:
        if exc.code == TWILIO_AUTH_FAILED:
            return NotConfigured("Twilio authentication failed.")
        if exc.code == TWILIO_ADDRESS_REQUIRED:
            return ProviderFailure("Address or bundle required for this number.", provider_code=exc.code)
        if exc.code == TWILIO_INSUFFICIENT_FUNDS:
            return ProviderFailure("Insufficient balance in Twilio account.", provider_code=exc.code)
        return ProviderFailure(f"{prefix}: {exc.msg}", provider_code=exc.code)


class MockNumbersProvider(TelephonyProvider):
    name = "twilio"

    _DIALING_PREFIX = {"US": "+1", "CA": "+1", "GB": "+44"}

    def search(self, country_code, number_type, *, area_code=None, contains=None, limit=DEFAULT_SEARCH_LIMIT):
        prefix = self._DIALING_PREFIX.get(country_code, "+1")
        if search_category(number_type) == NumberType.TOLL_FREE:
            block = "800"
        else:
            block = area_code or ("20" if prefix == "+44" else "555")

        results = []
        for index in range(1, 6):
            number = f"{prefix}{block}555{index:04d}"
            if contains and contains not in number:
                continue
            results.append(
                AvailableNumber(
                    phone_number=number,
                    friendly_name=number,
                    iso_country=country_code,
                    capabilities=_capabilities({"voice": True, "sms": True}),
                )
            )
        return results[:limit]

    def purchase(self, phone_number, *, friendly_name, webhooks):
        sid = f"PN{uuid.uuid4().hex.upper()}"
        logger.info("Mock purchase of %s as %s; no provider call made.", phone_number, sid)
        return PurchasedNumber(
            sid=sid,
            account_sid=MOCK_ACCOUNT_SID,
            phone_number=phone_number,
            friendly_name=friendly_name,
            capabilities={"voice": True, "sms": True, "mms": False, "fax": False},
            voice_url=webhooks.voice_url,
            sms_url=webhooks.sms_url,
            status_callback=webhooks.status_callback,
        )

    def release(self, sid):
        logger.info("Mock release of %s; no provider call made.", sid)


def get_numbers_provider() -> TelephonyProvider:
    """Build the provider selected by settings; credentials are read on every call."""

    if getattr(settings, "TWILIO_TESTING_MODE", True):
        return MockNumbersProvider()
    return TwilioNumbersProvider(
        getattr(settings, "TWILIO_ACCOUNT_SID", ""),
        getattr(settings, "TWILIO_AUTH_TOKEN", ""),
    )
