from decimal import Decimal
import uuid

import django.core.validators
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("phone_numbers", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Wallet",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("balance_usd", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Available balance in US dollars", max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("balance_inr", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Available balance in Indian rupees", max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("currency", models.CharField(choices=[("USD", "US Dollar"), ("INR", "Indian Rupee")], default="USD", help_text="Primary currency shown to the user", max_length=3)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(help_text="Owner of the wallet; exactly one wallet per user", on_delete=django.db.models.deletion.CASCADE, related_name="wallet", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Wallet",
                "verbose_name_plural": "Wallets",
                "db_table": "wallets",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(check=models.Q(balance_usd__gte=0), name="wallet_balance_usd_non_negative"),
                    models.CheckConstraint(check=models.Q(balance_inr__gte=0), name="wallet_balance_inr_non_negative"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEventLog",
            fields=[
                ("id", models.BigAutoField(primary_key=True, serialize=False)),
                ("event_id", models.CharField(max_length=255, unique=True)),
                ("event_type", models.CharField(blank=True, max_length=255)),
                ("payload_hash", models.CharField(blank=True, help_text="SHA256 of the raw payload for drift detection.", max_length=64)),
                ("payload", models.JSONField(blank=True, help_text="Verified event body, kept so failed events can be replayed.", null=True)),
                ("status", models.CharField(choices=[("received", "Received"), ("processing", "Processing"), ("processed", "Processed"), ("ignored", "Ignored"), ("failed", "Failed")], default="received", max_length=20)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("last_error", models.TextField(blank=True)),
                ("handled", models.BooleanField(default=False, help_text="True once the event has been fully processed.")),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Webhook event log",
                "verbose_name_plural": "Webhook event logs",
                "db_table": "wallet_webhook_event_log",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="wallet_webhook_status_idx"),
                    models.Index(fields=["event_type"], name="wallet_webhook_type_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WalletTransaction",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("type", models.CharField(choices=[("credit", "Credit"), ("debit", "Debit")], max_length=10)),
                ("amount", models.DecimalField(decimal_places=2, help_text="Strictly positive amount; direction is given by type", max_digits=12, validators=[django.core.validators.MinValueValidator(Decimal("0.01"))])),
                ("currency", models.CharField(choices=[("USD", "US Dollar"), ("INR", "Indian Rupee")], default="USD", max_length=3)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("completed", "Completed"), ("failed", "Failed"), ("refunded", "Refunded")], default="pending", max_length=10)),
                ("description", models.TextField(blank=True)),
                ("payment_method", models.CharField(blank=True, max_length=50)),
                ("stripe_checkout_session_id", models.CharField(blank=True, help_text="Stripe Checkout Session that funds this credit", max_length=255, null=True)),
                ("stripe_payment_id", models.CharField(blank=True, help_text="Stripe PaymentIntent identifier when known", max_length=255, null=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("phone_number", models.ForeignKey(blank=True, help_text="Phone number purchased or refunded by this transaction", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="transactions", to="phone_numbers.phonenumber")),
                ("user", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="wallet_transactions", to=settings.AUTH_USER_MODEL)),
                ("wallet", models.ForeignKey(help_text="Wallet whose balance this transaction affects", on_delete=django.db.models.deletion.CASCADE, related_name="transactions", to="wallet.wallet")),
            ],
            options={
                "verbose_name": "Wallet transaction",
                "verbose_name_plural": "Wallet transactions",
                "db_table": "transactions",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(check=models.Q(amount__gt=0), name="wallet_transaction_amount_positive"),
                    models.UniqueConstraint(condition=models.Q(stripe_checkout_session_id__isnull=False), fields=["stripe_checkout_session_id"], name="unique_wallet_transaction_checkout_session"),
                ],
                "indexes": [
                    models.Index(fields=["user", "-created_at"], name="wallet_tx_user_created_idx"),
                    models.Index(fields=["stripe_payment_id"], name="wallet_tx_payment_idx"),
                ],
            },
        ),
    ]
