from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIClient

from apps.accounts.domain.roles import AccountRole
from apps.accounts.models import AccountProfile
from apps.cart.models import CartItem
from apps.catalog.models import Product
from apps.orders.application.use_cases.cancel_order import CancelOrderCommand, CancelOrderUseCase
from apps.orders.application.use_cases.place_order import PlaceOrderCommand, PlaceOrderUseCase
from apps.orders.domain.errors import OrderConflictError
from apps.orders.domain.status import OrderStatus, PaymentStatus
from apps.orders.models import Order


def _make_user(email: str, role: str = AccountRole.USER.value, **extra):
    user = get_user_model().objects.create_user(username=email, email=email, password="pass12345", **extra)
    AccountProfile.objects.create(user=user, full_name=email.split("@")[0].title(), role=role)
    return user


class OrderTestMixin:
    def setUp(self):
        super().setUp()
        self.buyer = _make_user("buyer@example.com")
        self.seller = _make_user("seller@example.com", AccountRole.SELLER.value)
        self.other_seller = _make_user("other@example.com", AccountRole.SELLER.value)
        self.admin = _make_user("admin@example.com", AccountRole.ADMIN.value)
        self.phone = Product.objects.create(
            seller=self.seller, name="Phone", category="Mobiles", price=Decimal("250.00"), quantity=10
        )
        self.case = Product.objects.create(
            seller=self.seller, name="Case", category="Accessories", price=Decimal("50.00"), quantity=10
        )
        self.kettle = Product.objects.create(
            seller=self.other_seller, name="Kettle", category="Appliances", price=Decimal("80.00"), quantity=4
        )
        self.client = APIClient()

    def place(self, items, *, user=None, payment_method=None) -> Order:
        return PlaceOrderUseCase.execute(
            PlaceOrderCommand(
                user=user or self.buyer,
                address="Moi Avenue, Nairobi",
                phone_number="0712345678",
                payment_method=payment_method,
                items=tuple(items),
            )
        )

    def stock(self, product) -> int:
        product.refresh_from_db()
        return product.quantity


class PlaceOrderTests(OrderTestMixin, TestCase):
    def test_direct_order_snapshots_lines_and_reserves_stock(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/direct/",
            {
                "address": "Moi Avenue, Nairobi",
                "phone_number": "0712345678",
                "items": [{"product_id": self.phone.id, "quantity": 2}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(Decimal(data["total_price"]), Decimal("500.00"))
        self.assertEqual(data["status"], OrderStatus.PLACED)
        self.assertEqual(data["payment_status"], "pending")
        self.assertEqual(data["payment_method"], "COD")
        self.assertFalse(data["cancelled"])
        self.assertEqual(data["products"][0]["product"]["name"], "Phone")
        self.assertEqual(self.stock(self.phone), 8)

        order = Order.objects.get(id=data["id"])
        self.assertEqual(list(order.sellers.all()), [self.seller])
        self.assertGreater(order.ordered_at, 1_600_000_000_000)

    def test_snapshot_survives_product_changes(self):
        order = self.place([(self.phone.id, 1)])
        Product.objects.filter(id=self.phone.id).update(price=Decimal("999.00"), name="Phone v2")
        order.refresh_from_db()
        self.assertEqual(order.products[0]["product"]["price"], "250.00")
        self.assertEqual(order.products[0]["product"]["name"], "Phone")

    def test_cart_order_empties_cart(self):
        CartItem.objects.create(user=self.buyer, product=self.phone, quantity=1)
        CartItem.objects.create(user=self.buyer, product=self.kettle, quantity=2)
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/",
            {"address": "Kenyatta Ave", "phone_number": "0712345678", "payment_method": "M-Pesa"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        data = response.json()["data"]
        self.assertEqual(Decimal(data["total_price"]), Decimal("410.00"))
        self.assertEqual(data["payment_method"], "M-Pesa")
        self.assertFalse(CartItem.objects.filter(user=self.buyer).exists())
        order = Order.objects.get(id=data["id"])
        self.assertEqual(set(order.sellers.all()), {self.seller, self.other_seller})

    def test_empty_cart_is_rejected(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/", {"address": "Kenyatta Ave", "phone_number": "0712345678"}, format="json"
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Order.objects.exists())

    def test_missing_address_is_rejected(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/direct/",
            {"address": "  ", "phone_number": "0712345678", "items": [{"product_id": self.phone.id}]},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.stock(self.phone), 10)

    def test_insufficient_stock_rolls_back_everything(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/direct/",
            {
                "address": "Moi Avenue",
                "phone_number": "0712345678",
                "items": [
                    {"product_id": self.phone.id, "quantity": 1},
                    {"product_id": self.kettle.id, "quantity": 5},
                ],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.stock(self.phone), 10)
        self.assertEqual(self.stock(self.kettle), 4)
        self.assertFalse(Order.objects.exists())

    def test_unsupported_payment_method(self):
        self.client.force_authenticate(self.buyer)
        response = self.client.post(
            "/api/orders/direct/",
            {
                "address": "Moi Avenue",
                "phone_number": "0712345678",
                "payment_method": "Bitcoin",
                "items": [{"product_id": self.phone.id}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "payment_method")

    def test_placement_emails_buyer_and_sellers(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.place([(self.phone.id, 1), (self.kettle.id, 1)])
        recipients = sorted(m.to[0] for m in mail.outbox)
        self.assertEqual(recipients, ["buyer@example.com", "other@example.com", "seller@example.com"])
        buyer_mail = next(m for m in mail.outbox if m.to == ["buyer@example.com"])
        self.assertIn("Phone x 1", buyer_mail.body)


class CancelOrderTests(OrderTestMixin, TestCase):
    def test_place_then_cancel_restores_stock(self):
        order = self.place([(self.phone.id, 3), (self.kettle.id, 4)])
        self.assertEqual(self.stock(self.phone), 7)
        self.assertEqual(self.stock(self.kettle), 0)

        self.client.force_authenticate(self.buyer)
        response = self.client.post(f"/api/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["cancelled"])
        self.assertEqual(self.stock(self.phone), 10)
        self.assertEqual(self.stock(self.kettle), 4)

    def test_cancel_raises_stock_by_line_quantities_only(self):
        order = self.place([(self.case.id, 2)])
        Product.objects.filter(id=self.case.id).update(quantity=1)
        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(self.stock(self.case), 3)

    def test_cancel_shipped_order_is_rejected(self):
        order = self.place([(self.phone.id, 1)])
        Order.objects.filter(id=order.id).update(status=OrderStatus.SHIPPED)

        self.client.force_authenticate(self.buyer)
        response = self.client.post(f"/api/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 409)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.SHIPPED)
        self.assertFalse(order.cancelled)
        self.assertEqual(self.stock(self.phone), 9)

    def test_cancel_twice_conflicts_without_double_restock(self):
        order = self.place([(self.phone.id, 2)])
        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        with self.assertRaises(OrderConflictError):
            CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(self.stock(self.phone), 10)

    def test_cancel_skips_deleted_products(self):
        order = self.place([(self.phone.id, 1), (self.kettle.id, 1)])
        self.kettle.delete()
        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(self.stock(self.phone), 10)

    def test_other_buyers_cannot_cancel(self):
        order = self.place([(self.phone.id, 1)])
        intruder = _make_user("intruder@example.com")
        self.client.force_authenticate(intruder)
        response = self.client.post(f"/api/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 404)

    def test_admin_override_cancels_shipped_order_without_restock(self):
        order = self.place([(self.phone.id, 2)])
        Order.objects.filter(id=order.id).update(status=OrderStatus.OUT_FOR_DELIVERY)

        self.client.force_authenticate(self.admin)
        response = self.client.post(f"/api/admin/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 200)
        order.refresh_from_db()
        self.assertTrue(order.cancelled)
        self.assertEqual(self.stock(self.phone), 8)

        again = self.client.post(f"/api/admin/orders/{order.id}/cancel/")
        self.assertEqual(again.status_code, 409)

    def test_admin_override_of_unshipped_order_restocks(self):
        order = self.place([(self.phone.id, 3)])
        self.assertEqual(self.stock(self.phone), 7)

        self.client.force_authenticate(self.admin)
        response = self.client.post(f"/api/admin/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock(self.phone), 10)

    def test_seller_cancelling_through_status_restocks(self):
        order = self.place([(self.phone.id, 3)])
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 4}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()["data"]["cancelled"])
        self.assertEqual(self.stock(self.phone), 10)

    def test_reopened_order_reserves_again_and_restocks_once(self):
        order = self.place([(self.phone.id, 3)])
        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(self.stock(self.phone), 10)

        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 0}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.stock(self.phone), 7)

        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(self.stock(self.phone), 10)

    def test_reopen_conflicts_when_stock_is_gone(self):
        order = self.place([(self.kettle.id, 2)])
        CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        Product.objects.filter(id=self.kettle.id).update(quantity=1)

        self.client.force_authenticate(self.admin)
        response = self.client.post(f"/api/admin/orders/{order.id}/status/", {"status": 0}, format="json")
        self.assertEqual(response.status_code, 409)
        order.refresh_from_db()
        self.assertTrue(order.cancelled)
        self.assertEqual(self.stock(self.kettle), 1)

    def test_reopening_after_shipped_cancel_takes_no_stock(self):
        order = self.place([(self.phone.id, 2)])
        Order.objects.filter(id=order.id).update(status=OrderStatus.SHIPPED)
        self.client.force_authenticate(self.admin)
        self.client.post(f"/api/admin/orders/{order.id}/cancel/")
        self.client.post(f"/api/admin/orders/{order.id}/status/", {"status": 1}, format="json")
        self.assertEqual(self.stock(self.phone), 8)

    def test_override_cancel_requires_admin(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/admin/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 403)

    def test_cancellation_emails_buyer(self):
        order = self.place([(self.phone.id, 1)])
        with self.captureOnCommitCallbacks(execute=True):
            CancelOrderUseCase.execute(CancelOrderCommand(user=self.buyer, order_id=order.id))
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn("cancelled", mail.outbox[0].subject)


class DeleteOrderTests(OrderTestMixin, TestCase):
    def test_only_cancelled_orders_can_be_deleted(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.buyer)

        response = self.client.delete(f"/api/orders/{order.id}/")
        self.assertEqual(response.status_code, 409)

        self.client.post(f"/api/orders/{order.id}/cancel/")
        response = self.client.delete(f"/api/orders/{order.id}/")
        self.assertEqual(response.status_code, 200)
        self.assertFalse(Order.objects.filter(id=order.id).exists())


class SellerOrderTests(OrderTestMixin, TestCase):
    def test_seller_listing_only_includes_their_orders(self):
        mine = self.place([(self.phone.id, 1)])
        self.place([(self.kettle.id, 1)])
        self.client.force_authenticate(self.seller)
        response = self.client.get("/api/seller/orders/")
        self.assertEqual([o["id"] for o in response.json()["data"]], [mine.id])

    def test_seller_advances_status_of_owned_order(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 2}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status_label"], "Out For Delivery")

        # No ordering is enforced between stages.
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 0}, format="json")
        self.assertEqual(response.status_code, 200)

    def test_seller_cannot_touch_foreign_order(self):
        order = self.place([(self.kettle.id, 1)])
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 1}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_unknown_status_value_is_rejected(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.seller)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 9}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_admin_can_set_any_order_status(self):
        order = self.place([(self.kettle.id, 1)])
        self.client.force_authenticate(self.admin)
        with self.captureOnCommitCallbacks(execute=True):
            response = self.client.post(f"/api/admin/orders/{order.id}/status/", {"status": 1}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ["buyer@example.com"])

    def test_payment_status_override(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.seller)
        url = f"/api/seller/orders/{order.id}/payment-status/"

        self.assertEqual(self.client.post(url, {"payment_status": "bogus"}, format="json").status_code, 400)
        response = self.client.post(url, {"payment_status": "paid"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["payment_status"], PaymentStatus.PAID)

        # Paid is terminal.
        self.assertEqual(self.client.post(url, {"payment_status": "failed"}, format="json").status_code, 409)

    def test_buyer_cannot_use_seller_endpoints(self):
        order = self.place([(self.phone.id, 1)])
        self.client.force_authenticate(self.buyer)
        response = self.client.post(f"/api/seller/orders/{order.id}/status/", {"status": 1}, format="json")
        self.assertEqual(response.status_code, 403)

    def test_seller_analytics_counts_delivered_lines_by_category(self):
        delivered = self.place([(self.phone.id, 2), (self.case.id, 1), (self.kettle.id, 1)])
        Order.objects.filter(id=delivered.id).update(status=OrderStatus.DELIVERED)
        self.place([(self.phone.id, 1)])  # still placed, not counted
        cancelled = self.place([(self.case.id, 3)])
        Order.objects.filter(id=cancelled.id).update(status=OrderStatus.CANCELLED)

        self.client.force_authenticate(self.seller)
        data = self.client.get("/api/seller/analytics/").json()["data"]
        by_category = {c["category"]: c for c in data["categories"]}
        self.assertEqual(set(by_category), {"Mobiles", "Accessories"})
        self.assertEqual(Decimal(by_category["Mobiles"]["earnings"]), Decimal("500.00"))
        self.assertEqual(by_category["Mobiles"]["quantity"], 2)
        self.assertEqual(Decimal(data["total_earnings"]), Decimal("550.00"))


class OrderVisibilityTests(OrderTestMixin, TestCase):
    def test_buyer_lists_own_orders(self):
        first = self.place([(self.phone.id, 1)])
        second = self.place([(self.case.id, 1)])
        self.place([(self.kettle.id, 1)], user=_make_user("someone@example.com"))

        self.client.force_authenticate(self.buyer)
        ids = {o["id"] for o in self.client.get("/api/orders/me/").json()["data"]}
        self.assertEqual(ids, {first.id, second.id})

    def test_detail_visible_to_owner_seller_and_admin_only(self):
        order = self.place([(self.phone.id, 1)])
        for user, expected in (
            (self.buyer, 200),
            (self.seller, 200),
            (self.admin, 200),
            (self.other_seller, 404),
        ):
            self.client.force_authenticate(user)
            self.assertEqual(self.client.get(f"/api/orders/{order.id}/").status_code, expected, user.email)

    def test_admin_listing(self):
        self.place([(self.phone.id, 1)])
        self.place([(self.kettle.id, 1)])
        self.client.force_authenticate(self.admin)
        self.assertEqual(len(self.client.get("/api/admin/orders/").json()["data"]), 2)
        self.client.force_authenticate(self.buyer)
        self.assertEqual(self.client.get("/api/admin/orders/").status_code, 403)


class DiscountedOrderTests(OrderTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        now = timezone.now()
        Product.objects.filter(id=self.phone.id).update(
            discount_percentage=Decimal("20"),
            discount_starts_at=now - timedelta(days=1),
            discount_ends_at=now + timedelta(days=1),
        )

    def test_running_discount_prices_the_order(self):
        order = self.place([(self.phone.id, 2), (self.case.id, 1)])
        phone_line = order.products[0]["product"]
        self.assertEqual(phone_line["price"], "250.00")
        self.assertEqual(phone_line["final_price"], "200.00")
        self.assertEqual(order.total_price, Decimal("450.00"))

    def test_expired_discount_is_ignored(self):
        Product.objects.filter(id=self.phone.id).update(discount_ends_at=timezone.now() - timedelta(hours=1))
        order = self.place([(self.phone.id, 1)])
        self.assertEqual(order.total_price, Decimal("250.00"))

    def test_analytics_use_the_sale_price(self):
        order = self.place([(self.phone.id, 2)])
        Order.objects.filter(id=order.id).update(status=OrderStatus.DELIVERED)
        # Later price changes do not rewrite history.
        Product.objects.filter(id=self.phone.id).update(discount_percentage=Decimal("0"))

        self.client.force_authenticate(self.seller)
        data = self.client.get("/api/seller/analytics/").json()["data"]
        self.assertEqual(Decimal(data["total_earnings"]), Decimal("400.00"))


class BestSellersTests(OrderTestMixin, TestCase):
    def deliver(self, items, **extra) -> Order:
        order = self.place(items)
        Order.objects.filter(id=order.id).update(status=OrderStatus.DELIVERED, **extra)
        return order

    def test_ranks_sellers_by_delivered_revenue(self):
        self.deliver([(self.phone.id, 1), (self.case.id, 2)])
        self.deliver([(self.kettle.id, 2), (self.case.id, 1)])
        self.place([(self.kettle.id, 2)])  # not delivered

        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/admin/best-sellers/")
        self.assertEqual(response.status_code, 200)
        rows = response.json()["data"]
        self.assertEqual([r["seller_id"] for r in rows], [self.seller.id, self.other_seller.id])
        self.assertEqual(Decimal(rows[0]["total_revenue"]), Decimal("400.00"))
        self.assertEqual(rows[0]["total_orders"], 2)
        self.assertEqual(rows[0]["total_products"], 4)
        self.assertEqual(rows[0]["seller_name"], "Seller")
        self.assertEqual(Decimal(rows[1]["total_revenue"]), Decimal("160.00"))

    def test_category_and_month_filters(self):
        self.deliver([(self.phone.id, 1), (self.case.id, 1)])
        last_year = timezone.now() - timedelta(days=400)
        self.deliver([(self.phone.id, 2)], ordered_at=int(last_year.timestamp() * 1000))

        self.client.force_authenticate(self.admin)
        rows = self.client.get("/api/admin/best-sellers/", {"category": "Mobiles"}).json()["data"]
        self.assertEqual(Decimal(rows[0]["total_revenue"]), Decimal("750.00"))

        local = timezone.localtime(last_year)
        rows = self.client.get(
            "/api/admin/best-sellers/", {"month": local.month, "year": local.year}
        ).json()["data"]
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["total_products"], 2)

    def test_month_without_year_is_rejected(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get("/api/admin/best-sellers/", {"month": 3})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["field"], "month")

    def test_admin_only(self):
        self.client.force_authenticate(self.seller)
        self.assertEqual(self.client.get("/api/admin/best-sellers/").status_code, 403)
