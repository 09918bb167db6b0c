from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable

from printflow.core.errors import OrderNotFound, QuoteValidationError
from printflow.core.session import SessionContext
from printflow.domain.models import DeliveryTier, Order, OrderItem
from printflow.domain.pipeline import PIPELINE, FileStatus, Role, Stage, is_first

logger = logging.getLogger(__name__)

ChangeListener = Callable[[str, Order], None]


def _check_priced(order: Order) -> None:
    if order.total_amount == 0 and not is_first(order.status):
        raise QuoteValidationError(
            f"order {order.id} has no price and cannot leave {PIPELINE[0]}",
            fields=["total_amount"],
        )


class OrderStore:
    """Authoritative in-memory order collection with a per-stage card order."""

    def __init__(self, orders: Iterable[Order] = (), columns: dict[Stage, list[str]] | None = None):
        self._lock = threading.RLock()
        self._orders: dict[str, Order] = {}
        self._columns: dict[Stage, list[str]] = {stage: [] for stage in PIPELINE}
        self._listeners: list[ChangeListener] = []
        self.replace_all(orders, columns)

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def _notify(self, action: str, order: Order) -> None:
        # Called after the lock is released; listeners may read the store.
        for listener in self._listeners:
            listener(action, order.model_copy(deep=True))

    def replace_all(self, orders: Iterable[Order], columns: dict[Stage, list[str]] | None = None) -> None:
        with self._lock:
            self._orders = {}
            for order in orders:
                if order.id in self._orders:
                    raise QuoteValidationError(f"duplicate order id: {order.id}", fields=["id"])
                self._orders[order.id] = order.model_copy(deep=True)

            self._columns = {stage: [] for stage in PIPELINE}
            placed: set[str] = set()
            for stage, ids in (columns or {}).items():
                for order_id in ids:
                    order = self._orders.get(order_id)
                    if order is None or order.status != stage or order_id in placed:
                        continue
                    self._columns[stage].append(order_id)
                    placed.add(order_id)
            for order in self._orders.values():
                if order.id not in placed:
                    self._columns[order.status].append(order.id)

    def _require(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def create(self, order: Order) -> Order:
        with self._lock:
            if order.id in self._orders:
                raise QuoteValidationError(f"duplicate order id: {order.id}", fields=["id"])
            _check_priced(order)
            stored = order.model_copy(deep=True)
            self._orders[stored.id] = stored
            self._columns[stored.status].append(stored.id)
            logger.info("order created id=%s stage=%s total=%s", stored.id, stored.status, stored.total_amount)
            result = stored.model_copy(deep=True)
        self._notify("create", result)
        return result.model_copy(deep=True)

    def get(self, order_id: str) -> Order:
        with self._lock:
            return self._require(order_id).model_copy(deep=True)

    def set_status(self, order_id: str, stage: Stage, index: int | None = None) -> Order:
        """Move an order to ``stage``. Callers must have consulted the transition guard."""
        stage = Stage(stage)
        with self._lock:
            current = self._require(order_id)
            if current.status == stage:
                return current.model_copy(deep=True)
            updated = current.model_copy(update={"status": stage}, deep=True)
            _check_priced(updated)

            self._columns[current.status].remove(order_id)
            column = self._columns[stage]
            if index is None or index >= len(column):
                column.append(order_id)
            else:
                column.insert(max(0, index), order_id)
            self._orders[order_id] = updated
            logger.info("order status id=%s %s -> %s", order_id, current.status, stage)
            result = updated.model_copy(deep=True)
        self._notify("status", result)
        return result.model_copy(deep=True)

    def set_file_status(self, order_id: str, flag: FileStatus) -> Order:
        flag = FileStatus(flag)
        with self._lock:
            current = self._require(order_id)
            if current.file_status == flag:
                return current.model_copy(deep=True)
            updated = current.model_copy(update={"file_status": flag}, deep=True)
            self._orders[order_id] = updated
            logger.info("order file status id=%s %s -> %s", order_id, current.file_status, flag)
            result = updated.model_copy(deep=True)
        self._notify("file_status", result)
        return result.model_copy(deep=True)

    def update_pricing(
        self,
        order_id: str,
        items: list[OrderItem],
        total_amount: int,
        delivery_tier: DeliveryTier | None = None,
    ) -> Order:
        with self._lock:
            current = self._require(order_id)
            updated = Order.model_validate(
                {
                    **current.model_dump(),
                    "items": [item.model_dump() for item in items],
                    "total_amount": int(total_amount),
                    "delivery_tier": delivery_tier or current.delivery_tier,
                }
            )
            _check_priced(updated)
            self._orders[order_id] = updated
            logger.info("order repriced id=%s total=%s", order_id, total_amount)
            result = updated.model_copy(deep=True)
        self._notify("pricing", result)
        return result.model_copy(deep=True)

    def reorder(self, stage: Stage, from_index: int, to_index: int) -> list[str]:
        stage = Stage(stage)
        with self._lock:
            column = self._columns[stage]
            size = len(column)
            if not (0 <= from_index < size) or not (0 <= to_index < size):
                raise QuoteValidationError(
                    f"reorder index out of range for {stage} (size={size})",
                    fields=["from_index", "to_index"],
                )
            if from_index == to_index:
                return list(column)
            order_id = column.pop(from_index)
            column.insert(to_index, order_id)
            logger.debug("column %s reordered: %s", stage, column)
            moved = self._orders[order_id].model_copy(deep=True)
            ids = list(column)
        self._notify("reorder", moved)
        return ids

    def index_of(self, order_id: str) -> int:
        with self._lock:
            order = self._require(order_id)
            return self._columns[order.status].index(order_id)

    def column_ids(self, stage: Stage) -> list[str]:
        with self._lock:
            return list(self._columns[Stage(stage)])

    def column(self, stage: Stage) -> list[Order]:
        with self._lock:
            return [self._orders[i].model_copy(deep=True) for i in self._columns[Stage(stage)]]

    def all(self) -> list[Order]:
        with self._lock:
            return [self._orders[i].model_copy(deep=True) for stage in PIPELINE for i in self._columns[stage]]

    def query(self, session: SessionContext, stage: Stage | None = None) -> list[Order]:
        orders = self.all()
        if session.role == Role.CLIENT:
            orders = [o for o in orders if session.customer_id is not None and o.customer_id == session.customer_id]
        if stage is not None:
            orders = [o for o in orders if o.status == Stage(stage)]
        return orders

    def export_state(self) -> dict:
        with self._lock:
            return {
                "orders": [self._orders[i].model_dump(mode="json") for stage in PIPELINE for i in self._columns[stage]],
                "columns": {stage.value: list(ids) for stage, ids in self._columns.items()},
            }
