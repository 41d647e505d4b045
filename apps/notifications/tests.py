from __future__ import annotations

from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.core import mail
from django.test import TestCase, override_settings

from apps.notifications.application.use_cases.notify_order_event import (
    NotifyOrderEventCommand,
    NotifyOrderEventUseCase,
)
from apps.notifications.domain.errors import EmailGatewayError
from apps.notifications.domain.types import OrderEvent
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order


class NotifyOrderEventTests(TestCase):
    def setUp(self):
        User = get_user_model()
        self.buyer = User.objects.create_user(username="amina@example.com", email="amina@example.com", password="x")
        self.order = Order.objects.create(
            user=self.buyer,
            products=[{"product": {"id": 1, "name": "Phone", "price": "250.00", "seller_id": 99}, "quantity": 2}],
            total_price=Decimal("500.00"),
            address="Moi Avenue",
            phone_number="0712345678",
            ordered_at=1_700_000_000_000,
            status=OrderStatus.SHIPPED,
            payment_details={"transaction_id": "NLJ7RT61SV"},
        )

    @override_settings(DEFAULT_FROM_EMAIL="orders@soko.test")
    def test_status_change_mail(self):
        sent = NotifyOrderEventUseCase.execute(
            NotifyOrderEventCommand(order_id=self.order.id, event=OrderEvent.STATUS_CHANGED)
        )
        self.assertEqual(sent, 1)
        self.assertEqual(mail.outbox[0].from_email, "orders@soko.test")
        self.assertIn("Shipped", mail.outbox[0].body)

    def test_payment_received_mentions_receipt(self):
        NotifyOrderEventUseCase.execute(
            NotifyOrderEventCommand(order_id=self.order.id, event=OrderEvent.PAYMENT_RECEIVED)
        )
        self.assertIn("NLJ7RT61SV", mail.outbox[0].body)

    def test_missing_order_is_skipped(self):
        with self.assertLogs("soko.notifications", level="WARNING"):
            sent = NotifyOrderEventUseCase.execute(NotifyOrderEventCommand(order_id=987654, event=OrderEvent.PLACED))
        self.assertEqual(sent, 0)

    def test_gateway_failure_is_logged_not_raised(self):
        with patch(
            "apps.notifications.infrastructure.gateways.django_mail.DjangoMailGateway.send_email",
            side_effect=EmailGatewayError("smtp down"),
        ):
            with self.assertLogs("soko.notifications", level="ERROR"):
                sent = NotifyOrderEventUseCase.execute(
                    NotifyOrderEventCommand(order_id=self.order.id, event=OrderEvent.CANCELLED)
                )
        self.assertEqual(sent, 0)

    @override_settings(NOTIFICATIONS_EMAIL_PROVIDER="carrier-pigeon")
    def test_unknown_provider_drops_notice(self):
        with self.assertLogs("soko.notifications", level="ERROR"):
            sent = NotifyOrderEventUseCase.execute(
                NotifyOrderEventCommand(order_id=self.order.id, event=OrderEvent.CANCELLED)
            )
        self.assertEqual(sent, 0)
        self.assertEqual(mail.outbox, [])

    def test_dispatch_waits_for_commit(self):
        with self.captureOnCommitCallbacks() as callbacks:
            NotifyOrderEventUseCase.on_commit(self.order.id, OrderEvent.CANCELLED)
        self.assertEqual(mail.outbox, [])
        self.assertEqual(len(callbacks), 1)
        callbacks[0]()
        self.assertEqual(len(mail.outbox), 1)
