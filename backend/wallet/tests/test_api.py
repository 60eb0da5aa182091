from decimal import Decimal
from unittest import mock

import pytest
import stripe
from rest_framework.test import APIClient

from wallet.models import Wallet, WalletTransaction
from wallet.services.ledger import WalletService


@pytest.mark.django_db
def test_balance_requires_authentication():
    response = APIClient().get("/api/wallet/balance")

    assert response.status_code == 401


@pytest.mark.django_db
def test_balance_creates_wallet_on_first_read(api_client, user):
    response = api_client.get("/api/wallet/balance")

    assert response.status_code == 200
    payload = response.json()
    assert payload["balance_usd"] == "0.00"
    assert payload["balance_inr"] == "0.00"
    assert payload["currency"] == "USD"
    assert Wallet.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_balance_reflects_funds_added(api_client, user):
    WalletService().add_funds(user, "12.34", "USD")

    response = api_client.get("/api/wallet/balance")

    assert response.json()["balance_usd"] == "12.34"


@pytest.mark.django_db
def test_transactions_are_listed_newest_first_with_default_descriptions(api_client, user, other_user):
    service = WalletService()
    service.record_transaction(
        user=user,
        type=WalletTransaction.TransactionType.CREDIT,
        amount="10.00",
        currency="INR",
        stripe_checkout_session_id="cs_listed",
    )
    service.record_transaction(
        user=user,
        type=WalletTransaction.TransactionType.CREDIT,
        amount="3.00",
        currency="USD",
        status=WalletTransaction.Status.COMPLETED,
    )
    service.record_transaction(
        user=user,
        type=WalletTransaction.TransactionType.DEBIT,
        amount="1.50",
        currency="USD",
        status=WalletTransaction.Status.COMPLETED,
        description="Phone number purchase: +15550001111",
    )
    service.record_transaction(
        user=user,
        type=WalletTransaction.TransactionType.DEBIT,
        amount="2.00",
        currency="USD",
        status=WalletTransaction.Status.COMPLETED,
    )
    service.record_transaction(
        user=other_user,
        type=WalletTransaction.TransactionType.CREDIT,
        amount="99.00",
        currency="USD",
    )

    response = api_client.get("/api/wallet/transactions")

    assert response.status_code == 200
    transactions = response.json()["transactions"]
    assert [row["description"] for row in transactions] == [
        "Debit from wallet",
        "Phone number purchase: +15550001111",
        "Credit to wallet",
        "Wallet top-up via INR",
    ]
    assert transactions[1]["amount"] == "1.50"
    assert set(transactions[0]) == {"id", "date", "type", "amount", "currency", "description", "status"}


@pytest.mark.django_db
def test_transactions_can_be_filtered_by_type(api_client, user):
    service = WalletService()
    service.record_transaction(user=user, type="credit", amount="1.00", currency="USD")
    service.record_transaction(user=user, type="debit", amount="1.00", currency="USD")

    response = api_client.get("/api/wallet/transactions", {"type": "debit"})

    assert [row["type"] for row in response.json()["transactions"]] == ["debit"]


@pytest.mark.django_db
def test_add_test_funds_credits_wallet_and_records_transaction(settings, api_client, user):
    settings.WALLET_TEST_FUNDS_ENABLED = True

    response = api_client.post("/api/wallet/add-test-funds", {}, format="json")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["balance"]["balance_usd"] == "10.00"

    record = WalletTransaction.objects.get(pk=payload["transaction_id"])
    assert record.status == WalletTransaction.Status.COMPLETED
    assert record.description == "Test funds"
    assert record.amount == Decimal("10.00")


@pytest.mark.django_db
def test_add_test_funds_is_forbidden_when_disabled(settings, api_client, user):
    settings.WALLET_TEST_FUNDS_ENABLED = False

    response = api_client.post("/api/wallet/add-test-funds", {"amount": "50.00"}, format="json")

    assert response.status_code == 403
    assert response.json()["code"] == "TEST_FUNDS_DISABLED"
    assert not WalletTransaction.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_checkout_session_records_pending_credit(settings, api_client, user):
    settings.STRIPE_SECRET_KEY = "sk_test_wallet"
    settings.APP_PUBLIC_BASE_URL = "https://app.example.com"
    session = {"id": "cs_test_new", "url": "https://checkout.stripe.com/c/pay/cs_test_new"}

    with mock.patch("stripe.checkout.Session.create", return_value=session) as create:
        response = api_client.post(
            "/api/payment/create-checkout-session",
            {"amount": "25.00", "currency": "usd"},
            format="json",
        )

    assert response.status_code == 200
    assert response.json() == {"sessionId": "cs_test_new", "url": session["url"]}

    options = create.call_args.kwargs
    assert options["line_items"][0]["price_data"]["unit_amount"] == 2500
    assert options["line_items"][0]["price_data"]["currency"] == "usd"
    assert options["metadata"]["type"] == "wallet_topup"
    assert options["client_reference_id"] == str(user.pk)
    assert options["success_url"].startswith("https://app.example.com/dashboard/funds?session_id=")

    record = WalletTransaction.objects.get(stripe_checkout_session_id="cs_test_new")
    assert record.status == WalletTransaction.Status.PENDING
    assert record.amount == Decimal("25.00")
    assert Wallet.objects.get(user=user).balance_usd == Decimal("0.00")


@pytest.mark.django_db
def test_checkout_session_unavailable_without_stripe_key(settings, api_client, user):
    settings.STRIPE_SECRET_KEY = ""

    response = api_client.post(
        "/api/payment/create-checkout-session",
        {"amount": "25.00", "currency": "USD"},
        format="json",
    )

    assert response.status_code == 503
    assert response.json()["code"] == "PAYMENT_SERVICE_UNAVAILABLE"
    assert not WalletTransaction.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_checkout_session_reports_stripe_errors(settings, api_client, user):
    settings.STRIPE_SECRET_KEY = "sk_test_wallet"
    error = stripe.error.APIConnectionError("Network unreachable")

    with mock.patch("stripe.checkout.Session.create", side_effect=error):
        response = api_client.post(
            "/api/payment/create-checkout-session",
            {"amount": "25.00", "currency": "USD"},
            format="json",
        )

    assert response.status_code == 502
    assert response.json()["code"] == "CHECKOUT_FAILED"


@pytest.mark.django_db
@pytest.mark.parametrize("body", [{"amount": "0", "currency": "USD"}, {"amount": "5.00", "currency": "EUR"}])
def test_checkout_session_validates_input(api_client, body):
    response = api_client.post("/api/payment/create-checkout-session", body, format="json")

    assert response.status_code == 400
