"""URL routes for Stripe payments, mounted at /api/payment/."""
from django.urls import path

from .views import CreateCheckoutSessionView
from .views_webhook import StripeWebhookView

app_name = "payment"

urlpatterns = [
    path("create-checkout-session", CreateCheckoutSessionView.as_view(), name="create-checkout-session"),
    path("webhook", StripeWebhookView.as_view(), name="webhook"),
]
