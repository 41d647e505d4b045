from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "seller", "category", "price", "discount_percentage", "quantity", "is_active")
    search_fields = ("name", "category", "seller__email")
    list_filter = ("is_active", "category")
    list_select_related = ("seller",)
