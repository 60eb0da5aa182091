"""Twilio callback routes, mounted at /api/voice-agent/."""
from django.urls import path

from .views_voice import CallStatusWebhookView, SmsWebhookView, VoiceCallWebhookView

app_name = "voice"

urlpatterns = [
    path("handle-call", VoiceCallWebhookView.as_view(), name="handle-call"),
    path("handle-sms", SmsWebhookView.as_view(), name="handle-sms"),
    path("status", CallStatusWebhookView.as_view(), name="status"),
]
