"""Phone numbers bought through the wallet and answered by the voice agent."""
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone


class PhoneNumber(models.Model):
    """A provider-allocated number owned by a user and optionally assigned to a business."""

    class NumberType(models.TextChoices):
        LOCAL = "local", "Local"
        TOLL_FREE = "toll_free", "Toll free"
        MOBILE = "mobile", "Mobile"
        INTERNATIONAL = "international", "International"
        VANITY = "vanity", "Vanity"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(
        "businesses.Business",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="phone_numbers",
        help_text="Business whose calls this number answers",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="phone_numbers",
        help_text="User who bought the number",
    )
    phone_number = models.CharField(max_length=32, unique=True, help_text="E.164 formatted number")
    display_name = models.CharField(max_length=255)
    country_code = models.CharField(max_length=2, default="US")
    number_type = models.CharField(max_length=20, choices=NumberType.choices, default=NumberType.LOCAL)
    is_primary = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    provider = models.CharField(max_length=32, default="twilio")
    purchase_date = models.DateTimeField(default=timezone.now)
    monthly_cost = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
        help_text="Monthly price in USD charged at purchase",
    )
    features = models.JSONField(default=list, blank=True, help_text="Enabled capability names")
    notes = models.TextField(blank=True)
    twilio_sid = models.CharField(max_length=64, blank=True)
    twilio_account_sid = models.CharField(max_length=64, blank=True)
    voice_url = models.URLField(max_length=500, blank=True)
    sms_url = models.URLField(max_length=500, blank=True)
    status_callback_url = models.URLField(max_length=500, blank=True)
    capabilities = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "business_numbers"
        verbose_name = "Phone number"
        verbose_name_plural = "Phone numbers"
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=Q(business__isnull=False) | Q(user__isnull=False),
                name="business_number_has_owner",
            ),
            models.UniqueConstraint(
                fields=["business"],
                condition=Q(is_primary=True),
                name="business_number_single_primary",
            ),
        ]
        indexes = [
            models.Index(fields=["user", "-created_at"], name="business_number_user_idx"),
            models.Index(fields=["business"], name="business_number_business_idx"),
        ]

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    def __str__(self):
        return f"{self.display_name} ({self.phone_number})"
