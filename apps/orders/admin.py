from django.contrib import admin

from .models import Order


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "total_price", "status", "payment_method", "payment_status", "ordered_at")
    list_filter = ("status", "payment_method", "payment_status")
    search_fields = ("user__email", "phone_number")
    list_select_related = ("user",)
    readonly_fields = ("products", "payment_details", "ordered_at")
