"""Serializers for wallet endpoints."""
from decimal import Decimal

from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from wallet.models import Currency, WalletTransaction


class CheckoutSessionRequestSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0.01"))
    currency = serializers.CharField()

    def validate_currency(self, value):
        code = (value or "").strip().upper()
        if code not in Currency.values:
            raise serializers.ValidationError(_("Invalid currency. Must be USD or INR."))
        return code


class AddTestFundsSerializer(CheckoutSessionRequestSerializer):
    amount = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        min_value=Decimal("0.01"),
        required=False,
        default=Decimal("10.00"),
    )
    currency = serializers.CharField(required=False, default=Currency.USD.value)


class WalletTransactionSerializer(serializers.ModelSerializer):
    date = serializers.DateTimeField(source="created_at", read_only=True)
    description = serializers.SerializerMethodField()

    class Meta:
        model = WalletTransaction
        fields = ["id", "date", "type", "amount", "currency", "description", "status"]
        read_only_fields = fields

    def get_description(self, obj: WalletTransaction) -> str:
        if obj.description:
            return obj.description
        if obj.type == WalletTransaction.TransactionType.CREDIT:
            if obj.stripe_checkout_session_id:
                return f"Wallet top-up via {obj.currency}"
            return "Credit to wallet"
        return "Debit from wallet"
