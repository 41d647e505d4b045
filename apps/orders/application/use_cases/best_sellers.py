from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.accounts.models import AccountProfile
from apps.orders.domain.errors import OrderValidationError
from apps.orders.domain.policies import line_unit_price
from apps.orders.domain.status import OrderStatus
from apps.orders.models import Order


@dataclass(frozen=True)
class BestSellersCommand:
    month: int | None = None
    year: int | None = None
    category: str = ""


@dataclass(frozen=True)
class SellerRanking:
    seller_id: int
    seller_name: str
    total_revenue: Decimal
    total_orders: int
    total_products: int


def _month_window(month: int | None, year: int | None) -> tuple[int, int] | None:
    if month is None and year is None:
        return None
    if month is None or year is None:
        raise OrderValidationError("Month and year must be given together.", field="month")
    if not 1 <= month <= 12:
        raise OrderValidationError("Month must be between 1 and 12.", field="month")
    tz = timezone.get_current_timezone()
    start = datetime(year, month, 1, tzinfo=tz)
    end = datetime(year + 1, 1, 1, tzinfo=tz) if month == 12 else datetime(year, month + 1, 1, tzinfo=tz)
    return int(start.timestamp() * 1000), int(end.timestamp() * 1000)


class BestSellersUseCase:
    """Sellers ranked by revenue over delivered orders, optionally per month and category.

    Revenue uses each line's snapshot sale price. ``total_orders`` counts distinct
    orders containing at least one of the seller's matching lines.
    """

    @staticmethod
    def execute(cmd: BestSellersCommand) -> list[SellerRanking]:
        orders = Order.objects.filter(status=OrderStatus.DELIVERED)
        window = _month_window(cmd.month, cmd.year)
        if window is not None:
            orders = orders.filter(ordered_at__gte=window[0], ordered_at__lt=window[1])
        category = (cmd.category or "").strip()

        totals: dict[int, dict] = {}
        for order in orders:
            for line in order.products or []:
                product = line.get("product") or {}
                seller_id = int(product.get("seller_id") or 0)
                if not seller_id or (category and product.get("category") != category):
                    continue
                quantity = int(line.get("quantity") or 0)
                entry = totals.setdefault(seller_id, {"revenue": Decimal("0"), "orders": set(), "products": 0})
                entry["revenue"] += line_unit_price(product) * quantity
                entry["orders"].add(order.id)
                entry["products"] += quantity

        users = get_user_model().objects.in_bulk(list(totals))
        names = dict(AccountProfile.objects.filter(user_id__in=list(totals)).values_list("user_id", "full_name"))
        rankings = [
            SellerRanking(
                seller_id=seller_id,
                seller_name=names.get(seller_id) or getattr(users.get(seller_id), "email", ""),
                total_revenue=entry["revenue"],
                total_orders=len(entry["orders"]),
                total_products=entry["products"],
            )
            for seller_id, entry in totals.items()
        ]
        rankings.sort(key=lambda r: (-r.total_revenue, r.seller_id))
        return rankings
