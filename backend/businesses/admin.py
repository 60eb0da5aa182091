from django.contrib import admin

from businesses.models import Business


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ("name", "business_type", "owner", "created_at")
    list_filter = ("business_type",)
    search_fields = ("name", "owner__email")
    readonly_fields = ("id", "created_at", "updated_at")
