from __future__ import annotations

from dataclasses import dataclass, field

from printflow.core.errors import QuoteValidationError
from printflow.domain.models import Customer, DeliveryTier, Material, OrderItem, PricingConfig
from printflow.domain.yield_estimator import (
    PLATE_HEIGHT_CM,
    PLATE_WIDTH_CM,
    YieldEstimate,
    estimate_yield,
    round_half_up,
)

CUT_MINUTES_PER_PIECE = 2
PRINT_MINUTES_PER_PIECE = 5

TIER_MULTIPLIERS: dict[DeliveryTier, float] = {
    DeliveryTier.ECONOMIC: 1.0,
    DeliveryTier.STANDARD: 1.15,
    DeliveryTier.EXPRESS: 1.5,
}


@dataclass(frozen=True)
class ItemCost:
    item: OrderItem
    material_id: str
    yield_estimate: YieldEstimate
    material_cost: int
    operational_cost: float
    base_cost: float
    margin_multiplier: float
    segment_price: int
    tier_prices: dict[DeliveryTier, int] = field(default_factory=dict)

    def price(self, tier: DeliveryTier) -> int:
        return self.tier_prices[tier]


def labor_rate_per_minute(config: PricingConfig) -> float:
    return config.labor_cost_per_hour / 60


def apply_tier(segment_price: int, tier: DeliveryTier) -> int:
    return round_half_up(segment_price * TIER_MULTIPLIERS[tier])


def cost_item(
    item: OrderItem,
    material: Material,
    customer: Customer,
    config: PricingConfig,
    plate_width: float = PLATE_WIDTH_CM,
    plate_height: float = PLATE_HEIGHT_CM,
) -> ItemCost:
    if item.material_id != material.id:
        raise QuoteValidationError(
            f"item material {item.material_id} does not match {material.id}", fields=["material_id"]
        )

    estimate = estimate_yield(item.width, item.height, plate_width, plate_height, item.quantity)
    material_cost = estimate.plates_needed * material.price_per_unit

    minutes = item.quantity * CUT_MINUTES_PER_PIECE + item.quantity * PRINT_MINUTES_PER_PIECE
    operational_cost = minutes * labor_rate_per_minute(config)
    base_cost = material_cost + operational_cost

    margin = config.margin_for(customer.type)
    segment_price = round_half_up(base_cost * margin)
    return ItemCost(
        item=item,
        material_id=material.id,
        yield_estimate=estimate,
        material_cost=material_cost,
        operational_cost=operational_cost,
        base_cost=base_cost,
        margin_multiplier=margin,
        segment_price=segment_price,
        tier_prices={tier: apply_tier(segment_price, tier) for tier in DeliveryTier},
    )


def price_quote(
    item: OrderItem,
    material: Material,
    customer: Customer,
    config: PricingConfig,
    tier: DeliveryTier,
    plate_width: float = PLATE_WIDTH_CM,
    plate_height: float = PLATE_HEIGHT_CM,
) -> int:
    return cost_item(item, material, customer, config, plate_width, plate_height).price(tier)
