from decimal import Decimal

import pytest

from businesses.models import Business
from phone_numbers.errors import NumberUnavailable
from phone_numbers.models import PhoneNumber
from phone_numbers.tests.fakes import RecordingProvider


@pytest.fixture
def provider():
    return RecordingProvider()


@pytest.fixture
def failing_provider():
    return RecordingProvider(purchase_error=NumberUnavailable("Phone number is no longer available."))


@pytest.fixture
def business(user):
    return Business.objects.create(
        owner=user,
        name="Corner Cafe",
        business_type=Business.BusinessType.RESTAURANT,
        details={"greeting_message": "Thanks for calling Corner Cafe!"},
    )


@pytest.fixture
def make_number(user):
    def factory(phone_number="+15550000001", **overrides):
        values = {
            "user": user,
            "display_name": "Front desk",
            "monthly_cost": Decimal("1.50"),
            "twilio_sid": f"PN{phone_number[-4:]}",
        }
        values.update(overrides)
        return PhoneNumber.objects.create(phone_number=phone_number, **values)

    return factory
