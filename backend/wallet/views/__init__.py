"""Wallet API views: balance, history, Stripe top-ups and test funds."""
from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction
from rest_framework import status
from rest_framework.authentication import SessionAuthentication, TokenAuthentication
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from wallet.filters import WalletTransactionFilter
from wallet.models import WalletTransaction
from wallet.observability.metrics import CHECKOUT_SESSION_COUNT
from wallet.serializers import (
    CheckoutSessionRequestSerializer,
    AddTestFundsSerializer,
    WalletTransactionSerializer,
)
from wallet.services.ledger import Balance, WalletService
from wallet.services.stripe_payments import (
    StripeConfigurationError,
    StripeServiceError,
    create_wallet_topup_session,
)

logger = logging.getLogger(__name__)

TRANSACTION_HISTORY_LIMIT = 50


def serialize_balance(balance: Balance) -> dict:
    return {
        "balance_usd": str(balance.usd),
        "balance_inr": str(balance.inr),
        "currency": balance.primary_currency,
        "updated_at": balance.updated_at.isoformat() if balance.updated_at else None,
    }


class WalletAPIView(APIView):
    authentication_classes = [TokenAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]


class WalletBalanceView(WalletAPIView):
    def get(self, request):
        balance = WalletService().get_balance(request.user)
        return Response(serialize_balance(balance))


class WalletTransactionListView(WalletAPIView):
    def get(self, request):
        queryset = WalletTransaction.objects.filter(user=request.user).order_by("-created_at")
        filterset = WalletTransactionFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

        records = filterset.qs[:TRANSACTION_HISTORY_LIMIT]
        return Response({"transactions": WalletTransactionSerializer(records, many=True).data})


class AddTestFundsView(WalletAPIView):
    """Credit the caller's wallet without a payment; only for development and QA."""

    def post(self, request):
        if not getattr(settings, "WALLET_TEST_FUNDS_ENABLED", False):
            return Response(
                {"detail": "Test funds are disabled in this environment.", "code": "TEST_FUNDS_DISABLED"},
                status=status.HTTP_403_FORBIDDEN,
            )

        serializer = AddTestFundsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        amount = serializer.validated_data["amount"]
        currency = serializer.validated_data["currency"]

        service = WalletService()
        with transaction.atomic():
            balance = service.add_funds(request.user, amount, currency)
            record = service.record_transaction(
                user=request.user,
                type=WalletTransaction.TransactionType.CREDIT,
                amount=amount,
                currency=currency,
                status=WalletTransaction.Status.COMPLETED,
                description="Test funds",
                payment_method="test",
                metadata={"type": "test_funds"},
            )
        logger.info("Added %s %s test funds for user %s.", amount, currency, request.user.pk)

        return Response(
            {
                "success": True,
                "message": f"Added {amount} {currency} test funds",
                "transaction_id": str(record.id),
                "balance": serialize_balance(balance),
            }
        )


class CreateCheckoutSessionView(WalletAPIView):
    def post(self, request):
        serializer = CheckoutSessionRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        amount = serializer.validated_data["amount"]
        currency = serializer.validated_data["currency"]

        try:
            session = create_wallet_topup_session(user=request.user, amount=amount, currency=currency)
        except StripeConfigurationError as exc:
            logger.error("Stripe is not configured: %s", exc)
            CHECKOUT_SESSION_COUNT.labels(currency=currency, result="unavailable").inc()
            return Response(
                {"detail": "Payment service is not configured.", "code": "PAYMENT_SERVICE_UNAVAILABLE"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except StripeServiceError as exc:
            CHECKOUT_SESSION_COUNT.labels(currency=currency, result="error").inc()
            return Response(
                {"detail": str(exc), "code": "CHECKOUT_FAILED"},
                status=status.HTTP_502_BAD_GATEWAY,
            )

        WalletService().record_transaction(
            user=request.user,
            type=WalletTransaction.TransactionType.CREDIT,
            amount=amount,
            currency=currency,
            status=WalletTransaction.Status.PENDING,
            payment_method="stripe",
            stripe_checkout_session_id=session.get("id"),
            metadata={"type": "wallet_topup"},
        )
        CHECKOUT_SESSION_COUNT.labels(currency=currency, result="created").inc()

        return Response({"sessionId": session.get("id"), "url": session.get("url")})
