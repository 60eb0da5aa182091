from types import SimpleNamespace
from unittest import mock

import pytest
from twilio.base.exceptions import TwilioRestException

from phone_numbers.errors import NotConfigured, NumberUnavailable, ProviderFailure
from phone_numbers.services.providers import (
    MOCK_ACCOUNT_SID,
    MockNumbersProvider,
    TelephonyProvider,
    TwilioNumbersProvider,
    WebhookUrls,
    get_numbers_provider,
)

WEBHOOKS = WebhookUrls.for_base("https://app.example.com/")


def twilio_error(code):
    return TwilioRestException(400, "/IncomingPhoneNumbers.json", msg=f"error {code}", code=code)


def test_provider_missing_an_operation_cannot_be_built():
    class SearchOnlyProvider(TelephonyProvider):
        def search(self, country_code, number_type, **filters):
            return []

    with pytest.raises(TypeError):
        SearchOnlyProvider()


def test_webhook_urls_point_at_voice_agent_routes():
    assert WEBHOOKS.voice_url == "https://app.example.com/api/voice-agent/handle-call"
    assert WEBHOOKS.sms_url == "https://app.example.com/api/voice-agent/handle-sms"
    assert WEBHOOKS.status_callback == "https://app.example.com/api/voice-agent/status"


def test_mock_purchase_fabricates_allocation():
    purchased = MockNumbersProvider().purchase("+15550001111", friendly_name="Front desk", webhooks=WEBHOOKS)

    assert purchased.sid.startswith("PN")
    assert purchased.account_sid == MOCK_ACCOUNT_SID
    assert purchased.capabilities == {"voice": True, "sms": True, "mms": False, "fax": False}
    assert purchased.features == ["voice", "sms"]
    assert purchased.voice_url == WEBHOOKS.voice_url


def test_mock_search_honours_area_code_and_contains():
    provider = MockNumbersProvider()

    results = provider.search("US", "local", area_code="415")
    assert results and all(result.phone_number.startswith("+1415") for result in results)

    filtered = provider.search("US", "local", area_code="415", contains="0003")
    assert [result.phone_number for result in filtered] == ["+14155550003"]


def test_provider_selection_follows_testing_mode(settings):
    settings.TWILIO_TESTING_MODE = True
    assert isinstance(get_numbers_provider(), MockNumbersProvider)

    settings.TWILIO_TESTING_MODE = False
    settings.TWILIO_ACCOUNT_SID = "AC123"
    settings.TWILIO_AUTH_TOKEN = "secret"
    provider = get_numbers_provider()
    assert isinstance(provider, TwilioNumbersProvider)
    assert provider.account_sid == "AC123"


def test_twilio_provider_without_credentials_is_not_configured():
    with pytest.raises(NotConfigured):
        TwilioNumbersProvider("", "").search("US", "local")


def test_twilio_search_maps_records():
    client = mock.MagicMock()
    client.available_phone_numbers.return_value.toll_free.list.return_value = [
        SimpleNamespace(
            phone_number="+18005550100",
            friendly_name="(800) 555-0100",
            iso_country="US",
            capabilities={"voice": True, "SMS": False, "MMS": False},
            locality=None,
            region=None,
            address_requirements="none",
        )
    ]

    results = TwilioNumbersProvider("AC1", "token", client=client).search("US", "toll_free", contains="555")

    client.available_phone_numbers.assert_called_once_with("US")
    client.available_phone_numbers.return_value.toll_free.list.assert_called_once_with(limit=20, contains="555")
    assert results[0].as_dict()["phoneNumber"] == "+18005550100"
    assert results[0].capabilities["sms"] is False


@pytest.mark.parametrize(
    "code, expected",
    [
        (20404, NumberUnavailable),
        (20003, NotConfigured),
        (21452, ProviderFailure),
        (21608, ProviderFailure),
        (30001, ProviderFailure),
    ],
)
def test_twilio_purchase_errors_are_typed(code, expected):
    client = mock.MagicMock()
    client.incoming_phone_numbers.create.side_effect = twilio_error(code)

    with pytest.raises(expected):
        TwilioNumbersProvider("AC1", "token", client=client).purchase(
            "+15550001111", friendly_name="Main", webhooks=WEBHOOKS
        )


def test_twilio_release_treats_missing_number_as_released():
    client = mock.MagicMock()
    client.incoming_phone_numbers.return_value.delete.side_effect = twilio_error(20404)

    TwilioNumbersProvider("AC1", "token", client=client).release("PN123")

    client.incoming_phone_numbers.assert_called_once_with("PN123")


def test_twilio_release_propagates_other_errors():
    client = mock.MagicMock()
    client.incoming_phone_numbers.return_value.delete.side_effect = twilio_error(20500)

    with pytest.raises(ProviderFailure):
        TwilioNumbersProvider("AC1", "token", client=client).release("PN123")
