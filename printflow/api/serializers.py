from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from printflow.domain.models import Order
from printflow.domain.orders.views import BoardColumn, sla_status


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def order_to_dict(order: Order, now: datetime | None = None) -> dict[str, Any]:
    data = order.model_dump(mode="json")
    data["finishing_labels"] = sorted({label for item in order.items for label in item.finishing})
    data["sla"] = sla_status(order, now or now_utc())
    return data


def column_to_dict(column: BoardColumn, now: datetime) -> dict[str, Any]:
    return {
        "stage": column.stage.value,
        "count": column.count,
        "total_amount": column.total_amount,
        "orders": [order_to_dict(o, now) for o in column.orders],
    }
