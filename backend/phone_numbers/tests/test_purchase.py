from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.core.exceptions import ValidationError
from django.db import DatabaseError
from django.utils import timezone

from businesses.models import Business
from phone_numbers.errors import (
    InsufficientBalance,
    InvalidAssignment,
    NotFound,
    NumberUnavailable,
    PricingUnavailable,
    PrimaryNumberInUse,
)
from phone_numbers.models import PhoneNumber
from phone_numbers.services.purchase import NumberPurchaseService
from phone_numbers.tests.fakes import RecordingProvider
from wallet.models import Wallet, WalletTransaction
from wallet.services.ledger import WalletService


def service_for(provider):
    return NumberPurchaseService(wallet_service=WalletService(), provider=provider)


@pytest.mark.django_db
def test_purchase_without_funds_touches_nothing(user, provider):
    with pytest.raises(InsufficientBalance) as excinfo:
        service_for(provider).purchase(user, phone_number="+15550001111", display_name="Main")

    assert excinfo.value.required == Decimal("1.50")
    assert provider.purchased == []
    assert not PhoneNumber.objects.exists()
    assert not WalletTransaction.objects.exists()
    assert Wallet.objects.get(user=user).balance_usd == Decimal("0.00")


@pytest.mark.django_db
def test_purchase_is_refused_when_balance_lookup_fails(user, provider):
    WalletService().add_funds(user, "5.00", "USD")

    with mock.patch.object(Wallet.objects, "get_or_create", side_effect=DatabaseError("connection lost")):
        with pytest.raises(InsufficientBalance) as excinfo:
            service_for(provider).purchase(user, phone_number="+15550001111", display_name="Main")

    assert excinfo.value.available is None
    assert provider.purchased == []
    assert not PhoneNumber.objects.exists()
    assert Wallet.objects.get(user=user).balance_usd == Decimal("5.00")


@pytest.mark.django_db
def test_purchase_debits_price_once_and_records_number(user, provider):
    WalletService().add_funds(user, "5.00", "USD")

    result = service_for(provider).purchase(user, phone_number="+15550001111", display_name="Main")

    assert result.balance.usd == Decimal("3.50")
    assert Wallet.objects.get(user=user).balance_usd == Decimal("3.50")

    number = PhoneNumber.objects.get()
    assert number == result.number
    assert number.user == user
    assert number.business is None
    assert number.monthly_cost == Decimal("1.50")
    assert number.twilio_sid == provider.purchased[0].sid
    assert number.features == ["voice", "sms"]
    assert number.voice_url.endswith("/api/voice-agent/handle-call")

    debit = WalletTransaction.objects.get()
    assert debit.type == WalletTransaction.TransactionType.DEBIT
    assert debit.status == WalletTransaction.Status.COMPLETED
    assert debit.amount == Decimal("1.50")
    assert debit.phone_number == number
    assert debit.description == "Phone number purchase: +15550001111"
    assert debit.metadata == {"type": "phone_number_purchase", "phone_number_id": str(number.id)}


@pytest.mark.django_db
def test_purchase_uses_country_and_type_price(user, provider):
    WalletService().add_funds(user, "10.00", "USD")

    result = service_for(provider).purchase(
        user,
        phone_number="+448005550100",
        display_name="UK line",
        country_code="gb",
        number_type="tollFree",
    )

    assert result.number.country_code == "GB"
    assert result.number.number_type == PhoneNumber.NumberType.TOLL_FREE
    assert result.balance.usd == Decimal("6.00")


@pytest.mark.django_db
def test_provider_failure_leaves_wallet_and_records_untouched(user, failing_provider):
    WalletService().add_funds(user, "5.00", "USD")

    with pytest.raises(NumberUnavailable):
        service_for(failing_provider).purchase(user, phone_number="+15550001111", display_name="Main")

    assert Wallet.objects.get(user=user).balance_usd == Decimal("5.00")
    assert not PhoneNumber.objects.exists()
    assert not WalletTransaction.objects.exists()


@pytest.mark.django_db
def test_local_failure_rolls_back_and_releases_allocation(user, other_user, provider):
    WalletService().add_funds(user, "5.00", "USD")
    PhoneNumber.objects.create(user=other_user, phone_number="+15550001111", display_name="Taken")

    with pytest.raises(ValidationError):
        service_for(provider).purchase(user, phone_number="+15550001111", display_name="Main")

    assert provider.released == [provider.purchased[0].sid]
    assert Wallet.objects.get(user=user).balance_usd == Decimal("5.00")
    assert not WalletTransaction.objects.filter(user=user).exists()
    assert PhoneNumber.objects.filter(user=user).count() == 0


@pytest.mark.django_db
def test_unpriced_country_is_rejected_before_any_call(user, provider):
    WalletService().add_funds(user, "5.00", "USD")

    with pytest.raises(PricingUnavailable):
        service_for(provider).purchase(user, phone_number="+33155501111", display_name="Paris", country_code="FR")

    assert provider.purchased == []


@pytest.mark.django_db
def test_release_within_window_refunds_monthly_cost(user, provider, make_number, django_capture_on_commit_callbacks):
    number = make_number()

    with django_capture_on_commit_callbacks(execute=True):
        result = service_for(provider).release(user, number.id)

    assert result.refund == {"issued": True, "amount": "1.50", "currency": "USD"}
    assert result.as_dict()["success"] is True
    assert provider.released == [number.twilio_sid]
    assert not PhoneNumber.objects.filter(pk=number.pk).exists()
    assert Wallet.objects.get(user=user).balance_usd == Decimal("1.50")

    refund = WalletTransaction.objects.get(user=user)
    assert refund.type == WalletTransaction.TransactionType.CREDIT
    assert refund.status == WalletTransaction.Status.COMPLETED
    assert refund.phone_number is None
    assert refund.metadata["type"] == "phone_number_refund"


@pytest.mark.django_db
def test_provider_release_waits_for_commit(user, provider, make_number, django_capture_on_commit_callbacks):
    number = make_number()

    with django_capture_on_commit_callbacks() as callbacks:
        service_for(provider).release(user, number.id)

    assert provider.released == []
    assert len(callbacks) == 1

    callbacks[0]()
    assert provider.released == [number.twilio_sid]


class ReenteringProvider(RecordingProvider):
    """Provider whose release hook tries to release the same number again."""

    def __init__(self, user):
        super().__init__()
        self.user = user
        self.service = None
        self.number_id = None
        self.rejected = []

    def release(self, sid):
        super().release(sid)
        try:
            self.service.release(self.user, self.number_id)
        except NotFound:
            self.rejected.append(self.number_id)


@pytest.mark.django_db
def test_overlapping_release_refunds_only_once(user, django_capture_on_commit_callbacks):
    provider = ReenteringProvider(user)
    service = service_for(provider)
    provider.service = service
    WalletService().add_funds(user, Decimal("5.00"), "USD")

    bought = service.purchase(user, phone_number="+15550004444", display_name="Main")
    provider.number_id = bought.number.id

    with django_capture_on_commit_callbacks(execute=True):
        result = service.release(user, bought.number.id)

    assert result.refund["issued"] is True
    assert provider.rejected == [bought.number.id]
    assert provider.released == [bought.number.twilio_sid]
    assert Wallet.objects.get(user=user).balance_usd == Decimal("5.00")
    refunds = WalletTransaction.objects.filter(user=user, metadata__type="phone_number_refund")
    assert refunds.count() == 1


@pytest.mark.django_db
def test_release_after_window_issues_no_refund(user, provider, make_number):
    number = make_number()
    PhoneNumber.objects.filter(pk=number.pk).update(purchase_date=timezone.now() - timedelta(days=31))

    result = service_for(provider).release(user, number.id)

    assert result.refund["issued"] is False
    assert "30 days" in result.refund["reason"]
    assert not PhoneNumber.objects.filter(pk=number.pk).exists()
    assert not WalletTransaction.objects.exists()


@pytest.mark.django_db
def test_release_of_someone_elses_number_is_not_found(other_user, provider, make_number):
    number = make_number()

    with pytest.raises(NotFound):
        service_for(provider).release(other_user, number.id)

    assert PhoneNumber.objects.filter(pk=number.pk).exists()


@pytest.mark.django_db
def test_primary_number_cannot_be_released_while_business_has_others(user, provider, business, make_number):
    primary = make_number("+15550000001", business=business, is_primary=True)
    make_number("+15550000002", business=business)

    with pytest.raises(PrimaryNumberInUse):
        service_for(provider).release(user, primary.id)

    assert PhoneNumber.objects.filter(pk=primary.pk).exists()
    assert provider.released == []


@pytest.mark.django_db
def test_only_number_of_a_business_can_be_released_even_if_primary(user, provider, business, make_number):
    primary = make_number(business=business, is_primary=True)

    service_for(provider).release(user, primary.id)

    assert not PhoneNumber.objects.exists()


@pytest.mark.django_db
def test_setting_primary_clears_other_primary_of_business(user, provider, business, make_number):
    first = make_number("+15550000001", business=business, is_primary=True)
    second = make_number("+15550000002", business=business)

    service_for(provider).update(user, second.id, is_primary=True)

    first.refresh_from_db()
    second.refresh_from_db()
    assert second.is_primary is True
    assert first.is_primary is False


@pytest.mark.django_db
def test_assigning_to_business_requires_ownership(user, other_user, provider, make_number):
    foreign = Business.objects.create(owner=other_user, name="Elsewhere", business_type="retail")
    number = make_number()

    with pytest.raises(NotFound):
        service_for(provider).update(user, number.id, business_id=foreign.id)


@pytest.mark.django_db
def test_primary_requires_business(user, provider, make_number):
    number = make_number()

    with pytest.raises(InvalidAssignment):
        service_for(provider).update(user, number.id, is_primary=True)


@pytest.mark.django_db
def test_unassigning_business_drops_primary(user, provider, business, make_number):
    number = make_number(business=business, is_primary=True)

    updated = service_for(provider).update(user, number.id, business_id=None, display_name="Spare")

    assert updated.business is None
    assert updated.is_primary is False
    assert updated.display_name == "Spare"
