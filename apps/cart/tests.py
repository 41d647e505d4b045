from __future__ import annotations

from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework.test import APIClient

from apps.cart.models import CartItem
from apps.catalog.models import Product


class CartApiTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.seller = User.objects.create_user(username="s@example.com", email="s@example.com", password="x")
        self.buyer = User.objects.create_user(username="b@example.com", email="b@example.com", password="x")
        self.product = Product.objects.create(
            seller=self.seller, name="Sugar 2kg", category="Groceries", price=Decimal("120.00"), quantity=10
        )
        self.client = APIClient()
        self.client.force_authenticate(self.buyer)

    def test_add_increments_existing_line(self):
        self.client.post("/api/cart/items/", {"product_id": self.product.id}, format="json")
        response = self.client.post("/api/cart/items/", {"product_id": self.product.id}, format="json")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["items"][0]["quantity"], 2)
        self.assertEqual(Decimal(data["total_price"]), Decimal("240.00"))

    def test_add_unknown_product_is_404(self):
        response = self.client.post("/api/cart/items/", {"product_id": 424242}, format="json")
        self.assertEqual(response.status_code, 404)

    def test_remove_decrements_then_deletes(self):
        CartItem.objects.create(user=self.buyer, product=self.product, quantity=2)

        self.client.delete(f"/api/cart/items/{self.product.id}/")
        self.assertEqual(CartItem.objects.get(user=self.buyer, product=self.product).quantity, 1)

        response = self.client.delete(f"/api/cart/items/{self.product.id}/")
        self.assertEqual(response.json()["data"]["items"], [])
        self.assertFalse(CartItem.objects.filter(user=self.buyer).exists())

    def test_cart_is_per_user(self):
        CartItem.objects.create(user=self.seller, product=self.product, quantity=1)
        response = self.client.get("/api/cart/")
        self.assertEqual(response.json()["data"]["items"], [])

    def test_requires_authentication(self):
        self.assertEqual(APIClient().get("/api/cart/").status_code, 401)
