"""Wallet models: per-user balances, the transaction history and webhook receipts."""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q

ZERO = Decimal("0.00")


class Currency(models.TextChoices):
    USD = "USD", "US Dollar"
    INR = "INR", "Indian Rupee"


class Wallet(models.Model):
    """Stores the spendable USD and INR balances of a single user."""

    BALANCE_FIELDS = {
        Currency.USD: "balance_usd",
        Currency.INR: "balance_inr",
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet",
        help_text="Owner of the wallet; exactly one wallet per user",
    )
    balance_usd = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)],
        help_text="Available balance in US dollars",
    )
    balance_inr = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        validators=[MinValueValidator(ZERO)],
        help_text="Available balance in Indian rupees",
    )
    currency = models.CharField(
        max_length=3,
        choices=Currency.choices,
        default=Currency.USD,
        help_text="Primary currency shown to the user",
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "wallets"
        verbose_name = "Wallet"
        verbose_name_plural = "Wallets"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(check=Q(balance_usd__gte=0), name="wallet_balance_usd_non_negative"),
            models.CheckConstraint(check=Q(balance_inr__gte=0), name="wallet_balance_inr_non_negative"),
        ]

    @classmethod
    def balance_field(cls, currency: str) -> str:
        return cls.BALANCE_FIELDS[currency]

    def balance_for(self, currency: str) -> Decimal:
        return getattr(self, self.balance_field(currency))

    def clean(self):
        super().clean()
        for field in self.BALANCE_FIELDS.values():
            value = getattr(self, field)
            if value is not None and value < 0:
                raise ValidationError({field: "Wallet balance cannot be negative."})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"Wallet<{self.user_id}>"


class WalletTransaction(models.Model):
    """One money movement against a wallet: a top-up, a purchase debit or a refund."""

    class TransactionType(models.TextChoices):
        CREDIT = "credit", "Credit"
        DEBIT = "debit", "Debit"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        COMPLETED = "completed", "Completed"
        FAILED = "failed", "Failed"
        REFUNDED = "refunded", "Refunded"

    ALLOWED_TRANSITIONS = {
        Status.PENDING: {Status.COMPLETED, Status.FAILED},
        Status.COMPLETED: {Status.REFUNDED},
        Status.FAILED: set(),
        Status.REFUNDED: set(),
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="wallet_transactions",
    )
    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.CASCADE,
        related_name="transactions",
        help_text="Wallet whose balance this transaction affects",
    )
    type = models.CharField(max_length=10, choices=TransactionType.choices)
    amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text="Strictly positive amount; direction is given by type",
    )
    currency = models.CharField(max_length=3, choices=Currency.choices, default=Currency.USD)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PENDING)
    description = models.TextField(blank=True)
    payment_method = models.CharField(max_length=50, blank=True)
    stripe_checkout_session_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Stripe Checkout Session that funds this credit",
    )
    stripe_payment_id = models.CharField(
        max_length=255,
        blank=True,
        null=True,
        help_text="Stripe PaymentIntent identifier when known",
    )
    phone_number = models.ForeignKey(
        "phone_numbers.PhoneNumber",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="transactions",
        help_text="Phone number purchased or refunded by this transaction",
    )
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "transactions"
        verbose_name = "Wallet transaction"
        verbose_name_plural = "Wallet transactions"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(check=Q(amount__gt=0), name="wallet_transaction_amount_positive"),
            models.UniqueConstraint(
                fields=["stripe_checkout_session_id"],
                condition=Q(stripe_checkout_session_id__isnull=False),
                name="unique_wallet_transaction_checkout_session",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="wallet_tx_user_created_idx"),
            models.Index(fields=["stripe_payment_id"], name="wallet_tx_payment_idx"),
        ]

    def can_transition_to(self, status: str) -> bool:
        return status in self.ALLOWED_TRANSITIONS.get(self.status, set())

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Wallet transactions cannot be deleted.")

    def __str__(self):
        return f"WalletTransaction<{self.type}:{self.amount} {self.currency}:{self.status}>"


class WebhookEventLog(models.Model):
    """Keeps track of received Stripe events to guarantee idempotent processing."""

    class Status(models.TextChoices):
        RECEIVED = "received", "Received"
        PROCESSING = "processing", "Processing"
        PROCESSED = "processed", "Processed"
        IGNORED = "ignored", "Ignored"
        FAILED = "failed", "Failed"

    id = models.BigAutoField(primary_key=True)
    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=255, blank=True)
    payload_hash = models.CharField(
        max_length=64,
        blank=True,
        help_text="SHA256 of the raw payload for drift detection.",
    )
    payload = models.JSONField(
        null=True,
        blank=True,
        help_text="Verified event body, kept so failed events can be replayed.",
    )
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.RECEIVED,
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)
    handled = models.BooleanField(
        default=False,
        help_text="True once the event has been fully processed.",
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "wallet_webhook_event_log"
        verbose_name = "Webhook event log"
        verbose_name_plural = "Webhook event logs"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="wallet_webhook_status_idx"),
            models.Index(fields=["event_type"], name="wallet_webhook_type_idx"),
        ]

    def __str__(self):
        return f"WebhookEventLog<{self.event_id}:{self.status}>"
