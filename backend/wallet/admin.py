from django.contrib import admin

from wallet.models import Wallet, WalletTransaction, WebhookEventLog


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("user", "balance_usd", "balance_inr", "currency", "is_active", "updated_at")
    list_filter = ("currency", "is_active")
    search_fields = ("user__email", "user__username")
    # Balances change only through the wallet service.
    readonly_fields = ("id", "user", "balance_usd", "balance_inr", "created_at", "updated_at")


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "type", "display_amount", "status", "created_at")
    list_filter = ("type", "status", "currency")
    search_fields = ("user__email", "stripe_checkout_session_id", "stripe_payment_id", "description")
    readonly_fields = [field.name for field in WalletTransaction._meta.fields]
    fieldsets = (
        (None, {"fields": ("id", "user", "wallet", "type", "amount", "currency", "status")}),
        ("Details", {"fields": ("description", "payment_method", "phone_number", "metadata")}),
        ("Stripe", {"fields": ("stripe_checkout_session_id", "stripe_payment_id")}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    @admin.display(description="Amount")
    def display_amount(self, obj):
        sign = "+" if obj.type == WalletTransaction.TransactionType.CREDIT else "-"
        return f"{sign}{obj.amount} {obj.currency}"

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(WebhookEventLog)
class WebhookEventLogAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "status", "attempts", "handled", "created_at")
    list_filter = ("status", "event_type", "handled")
    search_fields = ("event_id",)
    readonly_fields = ("event_id", "event_type", "payload_hash", "payload", "created_at", "processed_at")
