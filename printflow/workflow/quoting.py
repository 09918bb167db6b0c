from __future__ import annotations

import logging
import uuid
from dataclasses import asdict, dataclass
from datetime import date, timedelta
from typing import Callable

from pydantic import BaseModel, Field

from printflow.core.errors import PermissionDenied, QuoteValidationError
from printflow.core.session import SessionContext
from printflow.domain.capacity import CapacitySnapshot
from printflow.domain.models import Customer, DeliveryTier, Order, OrderItem
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import PIPELINE, FileStatus, Role
from printflow.domain.pricing import ItemCost, cost_item
from printflow.domain.registry import ReferenceRegistry
from printflow.domain.yield_estimator import PLATE_HEIGHT_CM, PLATE_WIDTH_CM
from printflow.workflow.capacity_gate import CapacityGate, CapacityOverride
from printflow.workflow.pricing_config import PricingConfigStore

logger = logging.getLogger(__name__)

DEFAULT_LEAD_DAYS = {
    DeliveryTier.ECONOMIC: 10,
    DeliveryTier.STANDARD: 7,
    DeliveryTier.EXPRESS: 3,
}


class QuoteItem(BaseModel):
    material_id: str
    width: float
    height: float
    quantity: int
    finishing: list[str] = Field(default_factory=list)


class QuoteRequest(BaseModel):
    customer_id: str
    campaign_name: str = ""
    description: str = ""
    items: list[QuoteItem] = Field(default_factory=list)
    delivery_date: date | None = None


@dataclass(frozen=True)
class QuoteBreakdown:
    material_id: str
    quantity: int
    pieces_per_plate: int
    plates_needed: int
    waste_percent: int
    utilization_percent: int
    material_cost: int
    operational_cost: float
    base_cost: float
    margin_multiplier: float
    segment_price: int

    @classmethod
    def from_cost(cls, cost: ItemCost) -> "QuoteBreakdown":
        return cls(
            material_id=cost.material_id,
            quantity=cost.item.quantity,
            pieces_per_plate=cost.yield_estimate.pieces_per_plate,
            plates_needed=cost.yield_estimate.plates_needed,
            waste_percent=cost.yield_estimate.waste_percent,
            utilization_percent=cost.yield_estimate.utilization_percent,
            material_cost=cost.material_cost,
            operational_cost=cost.operational_cost,
            base_cost=cost.base_cost,
            margin_multiplier=cost.margin_multiplier,
            segment_price=cost.segment_price,
        )


@dataclass(frozen=True)
class QuoteOption:
    tier: DeliveryTier
    amount: int
    lead_days: int
    delivery_date: date


@dataclass(frozen=True)
class QuoteEstimate:
    customer_id: str
    items: list[OrderItem]
    breakdowns: list[QuoteBreakdown]
    options: list[QuoteOption]
    capacity: CapacitySnapshot

    def option(self, tier: DeliveryTier) -> QuoteOption:
        for option in self.options:
            if option.tier == tier:
                return option
        raise KeyError(tier)

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "breakdowns": [asdict(b) for b in self.breakdowns],
            "options": [
                {
                    "tier": o.tier.value,
                    "amount": o.amount,
                    "lead_days": o.lead_days,
                    "delivery_date": o.delivery_date.isoformat(),
                }
                for o in self.options
            ],
            "capacity": self.capacity.to_dict(),
        }


def new_order_id() -> str:
    return f"ord-{uuid.uuid4().hex[:12]}"


class QuoteService:
    def __init__(
        self,
        registry: ReferenceRegistry,
        config_store: PricingConfigStore,
        store: OrderStore,
        gate: CapacityGate,
        lead_days: dict[DeliveryTier, int] | None = None,
        plate_width: float = PLATE_WIDTH_CM,
        plate_height: float = PLATE_HEIGHT_CM,
        today: Callable[[], date] = date.today,
    ):
        self.registry = registry
        self.config_store = config_store
        self.store = store
        self.gate = gate
        self.lead_days = {**DEFAULT_LEAD_DAYS, **(lead_days or {})}
        self.plate_width = plate_width
        self.plate_height = plate_height
        self.today = today

    def _customer(self, customer_id: str) -> Customer:
        customer = self.registry.customer(customer_id)
        if customer is None:
            raise QuoteValidationError(f"unknown customer: {customer_id}", fields=["customer_id"])
        return customer

    def _cost_items(self, customer: Customer, items: list[OrderItem]) -> list[ItemCost]:
        config = self.config_store.get()
        costs = []
        for idx, item in enumerate(items):
            material = self.registry.material(item.material_id)
            if material is None:
                raise QuoteValidationError(
                    f"unknown material: {item.material_id}", fields=[f"items.{idx}.material_id"]
                )
            costs.append(cost_item(item, material, customer, config, self.plate_width, self.plate_height))
        return costs

    def validate(self, request: QuoteRequest) -> tuple[Customer, list[OrderItem]]:
        customer = self._customer(request.customer_id)
        if not request.campaign_name.strip():
            raise QuoteValidationError("campaign name is required", fields=["campaign_name"])
        if not request.items:
            raise QuoteValidationError("a quote needs at least one item", fields=["items"])

        items: list[OrderItem] = []
        for idx, raw in enumerate(request.items):
            bad = [name for name in ("width", "height", "quantity") if getattr(raw, name) <= 0]
            if bad:
                raise QuoteValidationError(
                    f"item {idx} has non-positive {', '.join(bad)}",
                    fields=[f"items.{idx}.{name}" for name in bad],
                )
            items.append(
                OrderItem(
                    material_id=raw.material_id,
                    width=raw.width,
                    height=raw.height,
                    quantity=raw.quantity,
                    finishing=frozenset(raw.finishing),
                )
            )
        return customer, items

    def estimate(self, request: QuoteRequest, session: SessionContext | None = None) -> QuoteEstimate:
        if session is not None and not session.acts_for(request.customer_id):
            raise PermissionDenied("clients may only request quotes for their own account")
        customer, items = self.validate(request)
        costs = self._cost_items(customer, items)
        today = self.today()
        options = [
            QuoteOption(
                tier=tier,
                amount=sum(c.price(tier) for c in costs),
                lead_days=self.lead_days[tier],
                delivery_date=today + timedelta(days=self.lead_days[tier]),
            )
            for tier in DeliveryTier
        ]
        return QuoteEstimate(
            customer_id=customer.id,
            items=items,
            breakdowns=[QuoteBreakdown.from_cost(c) for c in costs],
            options=options,
            capacity=self.gate.snapshot(self.store.all()),
        )

    def create_order(
        self,
        request: QuoteRequest,
        tier: DeliveryTier,
        session: SessionContext,
        override: CapacityOverride | None = None,
    ) -> Order:
        tier = DeliveryTier(tier)
        quote = self.estimate(request, session)
        if tier == DeliveryTier.EXPRESS:
            self.gate.check_express(quote.capacity, override, session)

        option = quote.option(tier)
        order = Order(
            id=new_order_id(),
            customer_id=quote.customer_id,
            campaign_name=request.campaign_name.strip(),
            description=request.description,
            status=PIPELINE[0],
            items=quote.items,
            total_amount=option.amount,
            delivery_date=request.delivery_date or option.delivery_date,
            created_at=self.today(),
            file_status=FileStatus.GREEN,
            delivery_tier=tier,
        )
        created = self.store.create(order)
        logger.info(
            "quote accepted order=%s customer=%s tier=%s total=%s",
            created.id,
            created.customer_id,
            tier,
            created.total_amount,
        )
        return created

    def price_order(self, order_id: str, tier: DeliveryTier, session: SessionContext) -> Order:
        """Re-run the pricing engine over an existing order's items."""
        if session.role == Role.CLIENT:
            raise PermissionDenied("clients cannot reprice orders")
        tier = DeliveryTier(tier)
        order = self.store.get(order_id)
        if not order.items:
            raise QuoteValidationError(f"order {order_id} has no items to price", fields=["items"])
        costs = self._cost_items(self._customer(order.customer_id), order.items)
        return self.store.update_pricing(order_id, order.items, sum(c.price(tier) for c in costs), tier)
