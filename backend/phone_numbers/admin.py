from django.contrib import admin

from phone_numbers.models import PhoneNumber


@admin.register(PhoneNumber)
class PhoneNumberAdmin(admin.ModelAdmin):
    list_display = ("phone_number", "display_name", "number_type", "business", "user", "is_primary", "is_active")
    list_filter = ("number_type", "country_code", "is_primary", "is_active", "provider")
    search_fields = ("phone_number", "display_name", "twilio_sid", "user__email", "business__name")
    readonly_fields = (
        "id",
        "twilio_sid",
        "twilio_account_sid",
        "monthly_cost",
        "purchase_date",
        "capabilities",
        "created_at",
        "updated_at",
    )
