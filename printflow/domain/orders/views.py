from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Literal

from printflow.core.session import SessionContext
from printflow.domain.models import Order
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import PIPELINE, FileStatus, Stage

SlaStatus = Literal["overdue", "at_risk", "ok", "none"]

AT_RISK_WINDOW = timedelta(hours=48)
SLA_EXEMPT_STAGES = frozenset({Stage.DISPATCH, Stage.DONE})


@dataclass
class BoardColumn:
    stage: Stage
    orders: list[Order] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.orders)

    @property
    def total_amount(self) -> int:
        return sum(o.total_amount for o in self.orders)


@dataclass
class ProductionQueue:
    ready: list[Order]
    pending: list[Order]


def sla_status(order: Order, now: datetime) -> SlaStatus:
    if order.status in SLA_EXEMPT_STAGES or order.delivery_date is None:
        return "none"
    due = datetime.combine(order.delivery_date, time.min, tzinfo=now.tzinfo)
    remaining = due - now
    if remaining < timedelta(0):
        return "overdue"
    if remaining < AT_RISK_WINDOW:
        return "at_risk"
    return "ok"


def build_board(store: OrderStore, session: SessionContext) -> list[BoardColumn]:
    visible = {o.id for o in store.query(session)}
    return [
        BoardColumn(stage=stage, orders=[o for o in store.column(stage) if o.id in visible])
        for stage in PIPELINE
    ]


def _by_delivery(order: Order) -> tuple[int, date]:
    if order.delivery_date is None:
        return (1, date.max)
    return (0, order.delivery_date)


def production_queue(orders: Iterable[Order]) -> ProductionQueue:
    relevant = [
        o
        for o in orders
        if o.status in (Stage.IN_PRODUCTION, Stage.PENDING_APPROVAL)
        or (o.status == Stage.REQUEST and o.file_status != FileStatus.GREEN)
    ]
    relevant.sort(key=_by_delivery)
    ready = [o for o in relevant if o.file_status == FileStatus.GREEN and o.status == Stage.IN_PRODUCTION]
    ready_ids = {o.id for o in ready}
    return ProductionQueue(ready=ready, pending=[o for o in relevant if o.id not in ready_ids])
