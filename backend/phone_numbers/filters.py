"""FilterSet definitions for number endpoints."""
from __future__ import annotations

import django_filters

from phone_numbers.models import PhoneNumber


class PhoneNumberFilter(django_filters.FilterSet):
    business = django_filters.UUIDFilter(field_name="business_id")
    number_type = django_filters.CharFilter(field_name="number_type", lookup_expr="iexact")
    country_code = django_filters.CharFilter(field_name="country_code", lookup_expr="iexact")
    is_active = django_filters.BooleanFilter(field_name="is_active")

    class Meta:
        model = PhoneNumber
        fields = ["business", "number_type", "country_code", "is_active"]
