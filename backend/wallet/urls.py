"""URL routes for wallet endpoints, mounted at /api/wallet/."""
from django.urls import path

from .views import AddTestFundsView, WalletBalanceView, WalletTransactionListView

app_name = "wallet"

urlpatterns = [
    path("balance", WalletBalanceView.as_view(), name="balance"),
    path("transactions", WalletTransactionListView.as_view(), name="transactions"),
    path("add-test-funds", AddTestFundsView.as_view(), name="add-test-funds"),
]
