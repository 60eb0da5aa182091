import uuid
from decimal import Decimal
from unittest import mock

import pytest

from phone_numbers.models import PhoneNumber
from wallet.models import Wallet, WalletTransaction
from wallet.services.ledger import WalletService

PROVIDER_PATH = "phone_numbers.services.purchase.get_numbers_provider"


@pytest.fixture(autouse=True)
def testing_mode(settings):
    settings.TWILIO_TESTING_MODE = True
    settings.TWILIO_WEBHOOK_BASE_URL = "https://app.example.com"


@pytest.mark.django_db
def test_search_returns_priced_numbers(api_client):
    response = api_client.post(
        "/api/numbers/search",
        {"countryCode": "us", "numberType": "tollFree"},
        format="json",
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["total"] == len(payload["numbers"]) > 0
    assert {row["monthlyCost"] for row in payload["numbers"]} == {"3.00"}
    assert payload["numbers"][0]["phoneNumber"].startswith("+1800")


@pytest.mark.django_db
@pytest.mark.parametrize(
    "body",
    [
        {"numberType": "local"},
        {"countryCode": "US"},
        {"countryCode": "FR", "numberType": "local"},
        {"countryCode": "US", "numberType": "satellite"},
    ],
)
def test_search_rejects_incomplete_or_unsupported_requests(api_client, body):
    response = api_client.post("/api/numbers/search", body, format="json")

    assert response.status_code == 400


@pytest.mark.django_db
def test_search_without_twilio_credentials_is_unavailable(settings, api_client):
    settings.TWILIO_TESTING_MODE = False
    settings.TWILIO_ACCOUNT_SID = ""
    settings.TWILIO_AUTH_TOKEN = ""

    response = api_client.post("/api/numbers/search", {"countryCode": "US", "numberType": "local"}, format="json")

    assert response.status_code == 503
    assert response.json()["code"] == "TWILIO_NOT_CONFIGURED"


@pytest.mark.django_db
def test_purchase_with_empty_wallet_is_payment_required(api_client, user, provider):
    with mock.patch(PROVIDER_PATH, return_value=provider):
        response = api_client.post(
            "/api/numbers/purchase",
            {"phoneNumber": "+15550001111", "displayName": "Main"},
            format="json",
        )

    assert response.status_code == 402
    payload = response.json()
    assert payload["code"] == "INSUFFICIENT_BALANCE"
    assert payload["requiredAmount"] == "1.50"
    assert payload["currency"] == "USD"
    assert provider.purchased == []
    assert not PhoneNumber.objects.exists()


@pytest.mark.django_db
def test_purchase_debits_wallet(api_client, user):
    WalletService().add_funds(user, "5.00", "USD")

    response = api_client.post(
        "/api/numbers/purchase",
        {"phoneNumber": "+15550001111", "displayName": "Main"},
        format="json",
    )

    assert response.status_code == 201
    payload = response.json()
    assert payload["number"]["phone_number"] == "+15550001111"
    assert payload["number"]["voice_url"] == "https://app.example.com/api/voice-agent/handle-call"
    assert payload["transaction"]["amount"] == "1.50"
    assert payload["balance"]["balance_usd"] == "3.50"
    assert Wallet.objects.get(user=user).balance_usd == Decimal("3.50")


@pytest.mark.django_db
def test_purchase_of_taken_number_is_gone(api_client, user, failing_provider):
    WalletService().add_funds(user, "5.00", "USD")

    with mock.patch(PROVIDER_PATH, return_value=failing_provider):
        response = api_client.post(
            "/api/numbers/purchase",
            {"phoneNumber": "+15550001111", "displayName": "Main"},
            format="json",
        )

    assert response.status_code == 410
    assert response.json()["code"] == "NUMBER_UNAVAILABLE"
    assert Wallet.objects.get(user=user).balance_usd == Decimal("5.00")


@pytest.mark.django_db
def test_purchase_requires_phone_number_and_display_name(api_client):
    response = api_client.post("/api/numbers/purchase", {"phoneNumber": "+15550001111"}, format="json")

    assert response.status_code == 400


@pytest.mark.django_db
def test_release_returns_refund_summary(api_client, user, make_number):
    number = make_number()

    response = api_client.post(f"/api/numbers/{number.id}/release")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["refund"] == {"issued": True, "amount": "1.50", "currency": "USD"}
    assert not PhoneNumber.objects.filter(pk=number.pk).exists()


@pytest.mark.django_db
def test_release_unknown_number_is_not_found(api_client):
    response = api_client.post(f"/api/numbers/{uuid.uuid4()}/release")

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.django_db
def test_release_primary_number_in_use_is_rejected(api_client, business, make_number):
    primary = make_number("+15550000001", business=business, is_primary=True)
    make_number("+15550000002", business=business)

    response = api_client.post(f"/api/numbers/{primary.id}/release")

    assert response.status_code == 400
    assert response.json()["code"] == "PRIMARY_NUMBER_DELETE"
    assert not WalletTransaction.objects.exists()


@pytest.mark.django_db
def test_list_shows_only_callers_numbers(api_client, other_user, make_number):
    mine = make_number("+15550000001")
    make_number("+15550000002", user=other_user)

    response = api_client.get("/api/numbers/")

    assert response.status_code == 200
    assert [row["id"] for row in response.json()["numbers"]] == [str(mine.id)]


@pytest.mark.django_db
def test_patch_assigns_business_and_primary(api_client, business, make_number):
    number = make_number()

    response = api_client.patch(
        f"/api/numbers/{number.id}",
        {"business": str(business.id), "is_primary": True, "notes": "Main line"},
        format="json",
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["business"] == str(business.id)
    assert payload["is_primary"] is True
    assert payload["notes"] == "Main line"


@pytest.mark.django_db
def test_patch_primary_without_business_is_rejected(api_client, make_number):
    number = make_number()

    response = api_client.patch(f"/api/numbers/{number.id}", {"is_primary": True}, format="json")

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_ASSIGNMENT"


@pytest.mark.django_db
def test_numbers_endpoints_require_authentication(client):
    assert client.get("/api/numbers/").status_code == 401
