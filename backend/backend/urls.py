"""
URL configuration for backend project.

Routes include administration, the account, wallet, payment and number APIs,
the Twilio voice webhook, health checks and the Prometheus metrics endpoint.
"""
import os
from prometheus_client import CollectorRegistry, multiprocess, generate_latest, REGISTRY
from django.contrib import admin
from django.urls import path, include
from django.http import HttpResponse

from phone_numbers.views_voice import VoiceCallWebhookView

# Use multiprocess collector only if PROMETHEUS_MULTIPROC_DIR is set (production)
# Otherwise use default registry (development)
if os.environ.get('PROMETHEUS_MULTIPROC_DIR'):
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY


def health_check(request):
    return HttpResponse("OK", content_type="text/plain")


def metrics(request):
    payload = generate_latest(registry)
    return HttpResponse(payload, content_type="text/plain; version=0.0.4")


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/account/', include('accounts.urls')),
    path('api/wallet/', include('wallet.urls', namespace='wallet')),
    path('api/payment/', include('wallet.urls_payment', namespace='payment')),
    path('api/numbers/', include('phone_numbers.urls', namespace='numbers')),
    path('api/voice-agent/', include('phone_numbers.urls_voice', namespace='voice')),
    path('call', VoiceCallWebhookView.as_view(), name='call'),
    path('health/', health_check, name='health_check'),
    path('metrics/', metrics, name='metrics'),
]
