"""Business records that purchased phone numbers can be assigned to."""
import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class Business(models.Model):
    """A business operated by a user, answered by the AI voice agent."""

    class BusinessType(models.TextChoices):
        RESTAURANT = "restaurant", "Restaurant"
        RETAIL = "retail", "Retail"
        SERVICE = "service", "Service"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="businesses",
        help_text="User who manages this business",
    )
    name = models.CharField(max_length=255)
    business_type = models.CharField(
        max_length=20,
        choices=BusinessType.choices,
        help_text="Selects which detail variant applies to this business",
    )
    timezone = models.CharField(max_length=64, blank=True, default="")
    details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Type-specific details; shape is determined by business_type",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "businesses"
        verbose_name = "Business"
        verbose_name_plural = "Businesses"
        ordering = ["-created_at"]

    def clean(self):
        super().clean()
        from businesses.details import BusinessDetailsError, parse_details

        try:
            parse_details(self.business_type, self.details or {})
        except BusinessDetailsError as exc:
            raise ValidationError({"details": str(exc)}) from exc

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def parsed_details(self):
        from businesses.details import parse_details

        return parse_details(self.business_type, self.details or {})

    def __str__(self):
        return f"Business<{self.name}:{self.business_type}>"
