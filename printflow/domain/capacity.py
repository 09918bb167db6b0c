from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from printflow.domain.models import Order
from printflow.domain.pipeline import Stage
from printflow.domain.yield_estimator import round_half_up

EXPRESS_OVERRIDE_THRESHOLD = 80
SATURATION_THRESHOLD = 90


@dataclass(frozen=True)
class CapacitySnapshot:
    load_percent: int
    committed_amount: int
    max_capacity: int
    express_threshold: int = EXPRESS_OVERRIDE_THRESHOLD
    saturation_threshold: int = SATURATION_THRESHOLD

    @property
    def express_requires_override(self) -> bool:
        return self.load_percent > self.express_threshold

    @property
    def saturated(self) -> bool:
        return self.load_percent > self.saturation_threshold

    def to_dict(self) -> dict:
        return {
            "load_percent": self.load_percent,
            "committed_amount": self.committed_amount,
            "max_capacity": self.max_capacity,
            "express_requires_override": self.express_requires_override,
            "saturated": self.saturated,
        }


def committed_amount(orders: Iterable[Order]) -> int:
    return sum(o.total_amount for o in orders if o.status == Stage.IN_PRODUCTION)


def plant_load_percent(orders: Iterable[Order], max_capacity: int) -> int:
    if max_capacity <= 0:
        raise ValueError("max_capacity must be positive")
    load = round_half_up(100 * committed_amount(orders) / max_capacity)
    return min(100, max(0, load))


def capacity_snapshot(
    orders: Iterable[Order],
    max_capacity: int,
    express_threshold: int = EXPRESS_OVERRIDE_THRESHOLD,
    saturation_threshold: int = SATURATION_THRESHOLD,
) -> CapacitySnapshot:
    orders = list(orders)
    return CapacitySnapshot(
        load_percent=plant_load_percent(orders, max_capacity),
        committed_amount=committed_amount(orders),
        max_capacity=max_capacity,
        express_threshold=express_threshold,
        saturation_threshold=saturation_threshold,
    )
