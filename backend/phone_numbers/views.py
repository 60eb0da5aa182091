"""Number API views: search, purchase, release and management of owned numbers."""
from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.authentication import SessionAuthentication, TokenAuthentication
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from phone_numbers.errors import (
    InsufficientBalance,
    InvalidAssignment,
    NotConfigured,
    NotFound,
    NumbersError,
    NumberUnavailable,
    PricingUnavailable,
    PrimaryNumberInUse,
)
from phone_numbers.filters import PhoneNumberFilter
from phone_numbers.serializers import (
    NumberPurchaseSerializer,
    NumberSearchSerializer,
    PhoneNumberSerializer,
    PhoneNumberUpdateSerializer,
)
from phone_numbers.services.pricing import monthly_cost
from phone_numbers.services.providers import get_numbers_provider
from phone_numbers.services.purchase import NumberPurchaseService, numbers_for_user
from wallet.views import serialize_balance

logger = logging.getLogger(__name__)


def error_response(message, code, http_status, **extra):
    return Response({"detail": str(message), "code": code, **extra}, status=http_status)


class NumbersAPIView(APIView):
    authentication_classes = [TokenAuthentication, SessionAuthentication]
    permission_classes = [IsAuthenticated]


class NumberSearchView(NumbersAPIView):
    def post(self, request):
        serializer = NumberSearchSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        country_code = data["countryCode"]
        number_type = data["numberType"]

        try:
            results = get_numbers_provider().search(
                country_code,
                number_type,
                area_code=data.get("areaCode") or None,
                contains=data.get("contains") or None,
            )
        except NotConfigured as exc:
            logger.error("Number search unavailable: %s", exc)
            return error_response(
                "Phone number provisioning is not configured.",
                "TWILIO_NOT_CONFIGURED",
                status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except NumbersError as exc:
            return error_response(exc, "SEARCH_FAILED", status.HTTP_502_BAD_GATEWAY)

        price = str(monthly_cost(country_code, number_type))
        numbers = [{**result.as_dict(), "monthlyCost": price} for result in results]
        return Response({"success": True, "numbers": numbers, "total": len(numbers)})


class NumberPurchaseView(NumbersAPIView):
    def post(self, request):
        serializer = NumberPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            result = NumberPurchaseService().purchase(
                request.user,
                phone_number=data["phoneNumber"],
                display_name=data["displayName"],
                country_code=data["countryCode"],
                number_type=data["numberType"],
            )
        except PricingUnavailable as exc:
            return error_response(exc, exc.code, status.HTTP_400_BAD_REQUEST)
        except InsufficientBalance as exc:
            return error_response(
                f"Insufficient balance. Required: ${exc.required}",
                exc.code,
                status.HTTP_402_PAYMENT_REQUIRED,
                requiredAmount=str(exc.required),
                currency=exc.currency,
            )
        except NumberUnavailable as exc:
            return error_response(exc, exc.code, status.HTTP_410_GONE)
        except NotConfigured as exc:
            logger.error("Number purchase unavailable: %s", exc)
            return error_response(
                "Phone number provisioning is not configured.",
                exc.code,
                status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        except NumbersError as exc:
            return error_response(exc, "PURCHASE_FAILED", status.HTTP_502_BAD_GATEWAY)

        record = result.transaction
        return Response(
            {
                "success": True,
                "number": PhoneNumberSerializer(result.number).data,
                "transaction": {
                    "id": str(record.id),
                    "amount": str(record.amount),
                    "currency": record.currency,
                },
                "balance": serialize_balance(result.balance),
            },
            status=status.HTTP_201_CREATED,
        )


class NumberReleaseView(NumbersAPIView):
    def post(self, request, number_id):
        try:
            result = NumberPurchaseService().release(request.user, number_id)
        except NotFound as exc:
            return error_response(exc, exc.code, status.HTTP_404_NOT_FOUND)
        except PrimaryNumberInUse as exc:
            return error_response(exc, exc.code, status.HTTP_400_BAD_REQUEST)
        except NumbersError as exc:
            return error_response(exc, "RELEASE_FAILED", status.HTTP_502_BAD_GATEWAY)
        return Response(result.as_dict())


class PhoneNumberListView(NumbersAPIView):
    def get(self, request):
        queryset = numbers_for_user(request.user).order_by("-created_at")
        filterset = PhoneNumberFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response({"numbers": PhoneNumberSerializer(filterset.qs, many=True).data})


class PhoneNumberDetailView(NumbersAPIView):
    def get(self, request, number_id):
        number = numbers_for_user(request.user).filter(pk=number_id).first()
        if number is None:
            return error_response("Phone number not found.", NotFound.code, status.HTTP_404_NOT_FOUND)
        return Response(PhoneNumberSerializer(number).data)

    def patch(self, request, number_id):
        serializer = PhoneNumberUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        if "business" in changes:
            changes["business_id"] = changes.pop("business")

        try:
            number = NumberPurchaseService().update(request.user, number_id, **changes)
        except NotFound as exc:
            return error_response(exc, exc.code, status.HTTP_404_NOT_FOUND)
        except InvalidAssignment as exc:
            return error_response(exc, exc.code, status.HTTP_400_BAD_REQUEST)
        return Response(PhoneNumberSerializer(number).data)
