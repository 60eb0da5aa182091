"""Twilio webhooks for calls and messages reaching purchased numbers."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings
from django.http import HttpResponse
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.response import Response
from rest_framework.views import APIView
from twilio.request_validator import RequestValidator
from twilio.twiml.messaging_response import MessagingResponse
from twilio.twiml.voice_response import VoiceResponse

from businesses.details import greeting_for
from phone_numbers.models import PhoneNumber

logger = logging.getLogger(__name__)

VOICE = "alice"
DEFAULT_GREETING = (
    "Hello! This is AiRA voice assistant. Your voice agent configuration is not yet set up. "
    "Please configure your agent in the dashboard."
)
ERROR_MESSAGE = "We're sorry, but we encountered an error processing your call. Please try again later."
SMS_AUTO_REPLY = (
    "Thank you for your message. This is an automated response from AiRA. We'll get back to you soon!"
)


def twiml_response(twiml, status=200) -> HttpResponse:
    return HttpResponse(str(twiml), content_type="text/xml", status=status)


@method_decorator(csrf_exempt, name="dispatch")
class TwilioWebhookView(APIView, ABC):
    """Base for Twilio callbacks: no user auth, form-encoded bodies, optional signature check."""

    authentication_classes = []
    permission_classes = []
    parser_classes = [FormParser, MultiPartParser]
    description = ""

    def get(self, request):
        return Response({"message": self.description, "method": "POST", "endpoint": request.path})

    def post(self, request):
        if getattr(settings, "TWILIO_VALIDATE_WEBHOOKS", False) and not self._signature_valid(request):
            logger.warning("Rejected Twilio webhook to %s with an invalid signature.", request.path)
            return HttpResponse("Invalid signature", status=403, content_type="text/plain")
        return self.handle_webhook(request)

    @abstractmethod
    def handle_webhook(self, request) -> HttpResponse:
        raise NotImplementedError

    @staticmethod
    def _signature_valid(request) -> bool:
        signature = request.headers.get("X-Twilio-Signature", "")
        validator = RequestValidator(getattr(settings, "TWILIO_AUTH_TOKEN", ""))
        return validator.validate(request.build_absolute_uri(), request.data.dict(), signature)


class VoiceCallWebhookView(TwilioWebhookView):
    description = "Voice agent webhook endpoint"

    def handle_webhook(self, request):
        call_sid = request.data.get("CallSid")
        to_number = request.data.get("To")
        logger.info(
            "Incoming call %s from %s to %s (%s).",
            call_sid,
            request.data.get("From"),
            to_number,
            request.data.get("CallStatus"),
        )

        try:
            greeting = greeting_for_number(to_number) or DEFAULT_GREETING
            response = VoiceResponse()
            response.say(greeting, voice=VOICE)
            response.hangup()
        except Exception:
            logger.exception("Failed to build TwiML for call %s.", call_sid)
            response = VoiceResponse()
            response.say(ERROR_MESSAGE, voice=VOICE)
            response.hangup()
            return twiml_response(response, status=500)

        return twiml_response(response)


class SmsWebhookView(TwilioWebhookView):
    description = "SMS webhook endpoint"

    def handle_webhook(self, request):
        logger.info(
            "Incoming SMS %s from %s to %s.",
            request.data.get("MessageSid"),
            request.data.get("From"),
            request.data.get("To"),
        )
        response = MessagingResponse()
        response.message(SMS_AUTO_REPLY)
        return twiml_response(response)


class CallStatusWebhookView(TwilioWebhookView):
    description = "Call status webhook endpoint"

    def handle_webhook(self, request):
        logger.info(
            "Call %s is %s after %ss (%s -> %s).",
            request.data.get("CallSid"),
            request.data.get("CallStatus"),
            request.data.get("CallDuration") or 0,
            request.data.get("From"),
            request.data.get("To"),
        )
        return HttpResponse("OK", content_type="text/plain")


def greeting_for_number(phone_number: Optional[str]) -> Optional[str]:
    """Greeting configured on the business the dialled number is assigned to."""

    if not phone_number:
        return None
    number = (
        PhoneNumber.objects.select_related("business")
        .filter(phone_number=phone_number, is_active=True, business__isnull=False)
        .first()
    )
    if number is None:
        return None
    return greeting_for(number.business.parsed_details)
