"""Serializers for number endpoints."""
from rest_framework import serializers

from phone_numbers.models import PhoneNumber
from phone_numbers.services.pricing import SUPPORTED_COUNTRIES, normalize_number_type


def _validate_country(value):
    code = (value or "").strip().upper()
    if code not in SUPPORTED_COUNTRIES:
        raise serializers.ValidationError(
            f"Unsupported country '{value}'. Use one of {', '.join(SUPPORTED_COUNTRIES)}."
        )
    return code


def _validate_number_type(value):
    normalized = normalize_number_type(value)
    if normalized is None:
        raise serializers.ValidationError(f"Unsupported number type '{value}'.")
    return normalized


class NumberSearchSerializer(serializers.Serializer):
    countryCode = serializers.CharField()
    numberType = serializers.CharField()
    areaCode = serializers.CharField(required=False, allow_blank=True)
    contains = serializers.CharField(required=False, allow_blank=True)

    def validate_countryCode(self, value):
        return _validate_country(value)

    def validate_numberType(self, value):
        return _validate_number_type(value)


class NumberPurchaseSerializer(serializers.Serializer):
    phoneNumber = serializers.CharField(max_length=32)
    displayName = serializers.CharField(max_length=255)
    countryCode = serializers.CharField(required=False, default="US")
    numberType = serializers.CharField(required=False, default=PhoneNumber.NumberType.LOCAL.value)

    def validate_countryCode(self, value):
        return _validate_country(value)

    def validate_numberType(self, value):
        return _validate_number_type(value)


class PhoneNumberSerializer(serializers.ModelSerializer):
    class Meta:
        model = PhoneNumber
        fields = [
            "id",
            "phone_number",
            "display_name",
            "country_code",
            "number_type",
            "business",
            "is_primary",
            "is_active",
            "provider",
            "purchase_date",
            "monthly_cost",
            "features",
            "notes",
            "twilio_sid",
            "capabilities",
            "voice_url",
            "sms_url",
            "status_callback_url",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PhoneNumberUpdateSerializer(serializers.Serializer):
    display_name = serializers.CharField(max_length=255, required=False)
    notes = serializers.CharField(required=False, allow_blank=True)
    is_active = serializers.BooleanField(required=False)
    business = serializers.UUIDField(required=False, allow_null=True)
    is_primary = serializers.BooleanField(required=False)
