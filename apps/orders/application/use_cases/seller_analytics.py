from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from decimal import Decimal

from apps.orders.domain.policies import line_unit_price
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order


@dataclass(frozen=True)
class SellerAnalyticsCommand:
    seller: object


@dataclass(frozen=True)
class CategoryEarnings:
    category: str
    quantity: int
    earnings: Decimal


@dataclass(frozen=True)
class SellerAnalyticsResult:
    categories: list[CategoryEarnings]
    total_earnings: Decimal


class SellerAnalyticsUseCase:
    """Earnings per category over the seller's delivered orders."""

    @staticmethod
    def execute(cmd: SellerAnalyticsCommand) -> SellerAnalyticsResult:
        orders = Order.objects.filter(sellers=cmd.seller, status=OrderStatus.DELIVERED).distinct()

        buckets: "OrderedDict[str, list]" = OrderedDict()
        for order in orders:
            for line in order.products or []:
                product = line.get("product") or {}
                if int(product.get("seller_id") or 0) != cmd.seller.id:
                    continue
                category = product.get("category") or "Uncategorized"
                quantity = int(line.get("quantity") or 0)
                bucket = buckets.setdefault(category, [0, Decimal("0")])
                bucket[0] += quantity
                bucket[1] += line_unit_price(product) * quantity

        categories = [
            CategoryEarnings(category=name, quantity=qty, earnings=earnings)
            for name, (qty, earnings) in sorted(buckets.items())
        ]
        return SellerAnalyticsResult(
            categories=categories,
            total_earnings=sum((c.earnings for c in categories), Decimal("0")),
        )
