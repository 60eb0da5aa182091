"""URL routes for number endpoints, mounted at /api/numbers/."""
from django.urls import path

from .views import (
    NumberPurchaseView,
    NumberReleaseView,
    NumberSearchView,
    PhoneNumberDetailView,
    PhoneNumberListView,
)

app_name = "numbers"

urlpatterns = [
    path("", PhoneNumberListView.as_view(), name="list"),
    path("search", NumberSearchView.as_view(), name="search"),
    path("purchase", NumberPurchaseView.as_view(), name="purchase"),
    path("<uuid:number_id>", PhoneNumberDetailView.as_view(), name="detail"),
    path("<uuid:number_id>/release", NumberReleaseView.as_view(), name="release"),
]
