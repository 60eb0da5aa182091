from decimal import Decimal
import uuid

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("businesses", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PhoneNumber",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("phone_number", models.CharField(help_text="E.164 formatted number", max_length=32, unique=True)),
                ("display_name", models.CharField(max_length=255)),
                ("country_code", models.CharField(default="US", max_length=2)),
                ("number_type", models.CharField(choices=[("local", "Local"), ("toll_free", "Toll free"), ("mobile", "Mobile"), ("international", "International"), ("vanity", "Vanity")], default="local", max_length=20)),
                ("is_primary", models.BooleanField(default=False)),
                ("is_active", models.BooleanField(default=True)),
                ("provider", models.CharField(default="twilio", max_length=32)),
                ("purchase_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("monthly_cost", models.DecimalField(decimal_places=2, default=Decimal("0.00"), help_text="Monthly price in USD charged at purchase", max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal("0.00"))])),
                ("features", models.JSONField(blank=True, default=list, help_text="Enabled capability names")),
                ("notes", models.TextField(blank=True)),
                ("twilio_sid", models.CharField(blank=True, max_length=64)),
                ("twilio_account_sid", models.CharField(blank=True, max_length=64)),
                ("voice_url", models.URLField(blank=True, max_length=500)),
                ("sms_url", models.URLField(blank=True, max_length=500)),
                ("status_callback_url", models.URLField(blank=True, max_length=500)),
                ("capabilities", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("business", models.ForeignKey(blank=True, help_text="Business whose calls this number answers", null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="phone_numbers", to="businesses.business")),
                ("user", models.ForeignKey(blank=True, help_text="User who bought the number", null=True, on_delete=django.db.models.deletion.CASCADE, related_name="phone_numbers", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "verbose_name": "Phone number",
                "verbose_name_plural": "Phone numbers",
                "db_table": "business_numbers",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(check=models.Q(("business__isnull", False), ("user__isnull", False), _connector="OR"), name="business_number_has_owner"),
                    models.UniqueConstraint(condition=models.Q(is_primary=True), fields=["business"], name="business_number_single_primary"),
                ],
                "indexes": [
                    models.Index(fields=["user", "-created_at"], name="business_number_user_idx"),
                    models.Index(fields=["business"], name="business_number_business_idx"),
                ],
            },
        ),
    ]
