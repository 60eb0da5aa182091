from unittest import mock

import pytest
from django.db import DatabaseError
from rest_framework.test import APIClient
from twilio.request_validator import RequestValidator

from phone_numbers.views_voice import DEFAULT_GREETING, ERROR_MESSAGE, TwilioWebhookView

CALL = {"CallSid": "CA123", "From": "+15557654321", "To": "+15550000001", "CallStatus": "ringing"}


@pytest.fixture(autouse=True)
def unsigned_webhooks(settings):
    settings.TWILIO_VALIDATE_WEBHOOKS = False


def test_webhook_view_without_handler_cannot_be_built():
    class SilentWebhookView(TwilioWebhookView):
        description = "Does nothing"

    with pytest.raises(TypeError):
        SilentWebhookView()


@pytest.mark.django_db
@pytest.mark.parametrize("path", ["/call", "/api/voice-agent/handle-call"])
def test_unconfigured_number_gets_default_greeting(path):
    response = APIClient().post(path, CALL)

    assert response.status_code == 200
    assert response["Content-Type"].startswith("text/xml")
    body = response.content.decode()
    assert '<Say voice="alice">' in body
    assert DEFAULT_GREETING in body
    assert "<Hangup" in body


@pytest.mark.django_db
def test_business_greeting_is_spoken(business, make_number):
    make_number("+15550000001", business=business)

    response = APIClient().post("/call", CALL)

    body = response.content.decode()
    assert "Thanks for calling Corner Cafe!" in body
    assert DEFAULT_GREETING not in body


@pytest.mark.django_db
def test_inactive_number_falls_back_to_default(business, make_number):
    make_number("+15550000001", business=business, is_active=False)

    response = APIClient().post("/call", CALL)

    assert DEFAULT_GREETING in response.content.decode()


@pytest.mark.django_db
def test_lookup_failure_returns_apology_twiml():
    with mock.patch("phone_numbers.views_voice.greeting_for_number", side_effect=DatabaseError("down")):
        response = APIClient().post("/call", CALL)

    assert response.status_code == 500
    assert ERROR_MESSAGE in response.content.decode()


@pytest.mark.django_db
def test_get_describes_endpoint():
    response = APIClient().get("/api/voice-agent/handle-call")

    assert response.status_code == 200
    assert response.json()["method"] == "POST"


@pytest.mark.django_db
def test_signature_is_enforced_when_enabled(settings):
    settings.TWILIO_VALIDATE_WEBHOOKS = True
    settings.TWILIO_AUTH_TOKEN = "twilio-token"
    client = APIClient()

    rejected = client.post("/call", CALL, HTTP_X_TWILIO_SIGNATURE="bogus")
    signature = RequestValidator("twilio-token").compute_signature("http://testserver/call", CALL)
    accepted = client.post("/call", CALL, HTTP_X_TWILIO_SIGNATURE=signature)

    assert rejected.status_code == 403
    assert accepted.status_code == 200


@pytest.mark.django_db
def test_sms_webhook_auto_replies():
    response = APIClient().post("/api/voice-agent/handle-sms", {"MessageSid": "SM1", "From": "+1", "To": "+2", "Body": "hi"})

    assert response.status_code == 200
    assert "<Message>Thank you for your message." in response.content.decode()


@pytest.mark.django_db
def test_status_webhook_acknowledges():
    response = APIClient().post("/api/voice-agent/status", {"CallSid": "CA1", "CallStatus": "completed"})

    assert response.status_code == 200
    assert response.content == b"OK"
