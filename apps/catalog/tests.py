from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from apps.accounts.domain.roles import AccountRole
from apps.accounts.models import AccountProfile
from apps.catalog.domain.errors import InsufficientStockError, ProductNotFoundError
from apps.catalog.models import Product
from apps.catalog.services.inventory_service import InventoryService


def _make_user(email: str, role: str = AccountRole.USER.value):
    user = get_user_model().objects.create_user(username=email, email=email, password="pass12345")
    AccountProfile.objects.create(user=user, full_name=email.split("@")[0], role=role)
    return user


class ProductApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.seller = _make_user("seller@example.com", AccountRole.SELLER.value)
        self.other_seller = _make_user("other@example.com", AccountRole.SELLER.value)
        self.buyer = _make_user("buyer@example.com")
        self.phone = Product.objects.create(
            seller=self.seller, name="Phone", category="Mobiles", price=Decimal("250.00"), quantity=5
        )
        self.kettle = Product.objects.create(
            seller=self.other_seller, name="Kettle", category="Appliances", price=Decimal("80.00"), quantity=2
        )

    def test_list_filters_by_category(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.get("/api/products/", {"category": "mobiles"})
        self.assertEqual(response.status_code, 200)
        names = [p["name"] for p in response.json()["data"]]
        self.assertEqual(names, ["Phone"])

    def test_inactive_products_are_hidden(self):
        Product.objects.filter(id=self.kettle.id).update(is_active=False)
        self.client.force_authenticate(self.buyer)
        names = [p["name"] for p in self.client.get("/api/products/").json()["data"]]
        self.assertNotIn("Kettle", names)

    def test_buyer_cannot_manage_products(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/seller/products/",
            {"name": "Mug", "category": "Kitchen", "price": "5.00", "quantity": 1},
            format="json",
        )
        self.assertEqual(response.status_code, 403)

    def test_seller_creates_and_lists_own_products(self):
        self.client.force_authenticate(self.seller)
        response = self.client.post(
            "/api/seller/products/",
            {"name": "Charger", "category": "Mobiles", "price": "15.50", "quantity": 10},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["data"]["seller_id"], self.seller.id)

        names = {p["name"] for p in self.client.get("/api/seller/products/").json()["data"]}
        self.assertEqual(names, {"Phone", "Charger"})

    def test_seller_rejects_non_positive_price(self):
        self.client.force_authenticate(self.seller)
        response = self.client.post(
            "/api/seller/products/",
            {"name": "Freebie", "category": "Misc", "price": "0", "quantity": 1},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "price")

    def test_seller_cannot_edit_foreign_product(self):
        self.client.force_authenticate(self.seller)
        response = self.client.put(
            f"/api/seller/products/{self.kettle.id}/",
            {"name": "Kettle", "category": "Appliances", "price": "1.00", "quantity": 2},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.kettle.refresh_from_db()
        self.assertEqual(self.kettle.price, Decimal("80.00"))

    def test_seller_deletes_own_product(self):
        self.client.force_authenticate(self.seller)
        response = self.client.delete(f"/api/seller/products/{self.phone.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Product.objects.filter(id=self.phone.id).exists())

    def test_seller_sets_running_discount(self):
        now = timezone.now()
        self.client.force_authenticate(self.seller)
        response = self.client.post(
            f"/api/seller/products/{self.phone.id}/discount/",
            {
                "percentage": "10",
                "starts_at": (now - timedelta(hours=1)).isoformat(),
                "ends_at": (now + timedelta(days=2)).isoformat(),
            },
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(Decimal(response.json()["data"]["final_price"]), Decimal("225.00"))

    def test_discount_outside_window_keeps_list_price(self):
        now = timezone.now()
        self.phone.discount_percentage = Decimal("50")
        self.phone.discount_starts_at = now + timedelta(days=1)
        self.phone.discount_ends_at = now + timedelta(days=2)
        self.assertEqual(self.phone.final_price(), Decimal("250.00"))
        self.assertEqual(self.phone.final_price(now + timedelta(days=1, hours=1)), Decimal("125.00"))

    def test_discount_validation(self):
        now = timezone.now()
        self.client.force_authenticate(self.seller)
        url = f"/api/seller/products/{self.phone.id}/discount/"
        response = self.client.post(url, {"percentage": "100"}, format="json")
        self.assertEqual(response.json()["error"]["field"], "percentage")
        response = self.client.post(
            url,
            {"percentage": "5", "starts_at": now.isoformat(), "ends_at": (now - timedelta(days=1)).isoformat()},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "ends_at")

    def test_seller_cannot_discount_foreign_product(self):
        self.client.force_authenticate(self.seller)
        response = self.client.post(
            f"/api/seller/products/{self.kettle.id}/discount/", {"percentage": "0"}, format="json"
        )
        self.assertEqual(response.status_code, 403)


class InventoryServiceTests(TestCase):
    def setUp(self):
        self.seller = _make_user("inv@example.com", AccountRole.SELLER.value)
        self.product = Product.objects.create(
            seller=self.seller, name="Lamp", category="Home", price=Decimal("40.00"), quantity=3
        )

    def test_reserve_aggregates_duplicate_lines(self):
        InventoryService.reserve([(self.product.id, 1), (self.product.id, 2)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 0)

    def test_reserve_refuses_overdraw(self):
        with self.assertRaises(InsufficientStockError):
            InventoryService.reserve([(self.product.id, 4)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 3)

    def test_reserve_unknown_product(self):
        with self.assertRaises(ProductNotFoundError):
            InventoryService.reserve([(999999, 1)])

    def test_restock_skips_deleted_products(self):
        restored = InventoryService.restock([(self.product.id, 2), (999999, 5)])
        self.assertEqual(restored, 1)
        self.product.refresh_from_db()
        self.assertEqual(self.product.quantity, 5)
