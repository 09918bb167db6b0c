from __future__ import annotations

import pytest

from printflow.core.errors import QuoteValidationError
from printflow.domain.models import CustomerType, DeliveryTier, OrderItem, PricingConfig
from printflow.domain.pricing import apply_tier, cost_item, labor_rate_per_minute, price_quote
from printflow.domain.registry import ReferenceRegistry

registry = ReferenceRegistry()
FOAM = registry.material("m1")
RECURRENT = registry.customer("c2")


def test_material_cost_for_full_plates():
    item = OrderItem(material_id="m1", width=120, height=240, quantity=50)
    cost = cost_item(item, FOAM, RECURRENT, PricingConfig())
    assert cost.yield_estimate.plates_needed == 50
    assert cost.material_cost == 750_000
    assert cost.operational_cost == pytest.approx(122_500)
    assert cost.base_cost == pytest.approx(872_500)


def test_recurrent_standard_price():
    item = OrderItem(material_id="m1", width=120, height=240, quantity=50)
    cost = cost_item(item, FOAM, RECURRENT, PricingConfig())
    assert cost.margin_multiplier == 1.35
    assert cost.segment_price == 1_177_875
    assert cost.price(DeliveryTier.STANDARD) == 1_354_556
    assert cost.price(DeliveryTier.EXPRESS) == 1_766_813
    assert price_quote(item, FOAM, RECURRENT, PricingConfig(), DeliveryTier.ECONOMIC) == 1_177_875


@pytest.mark.parametrize("customer_id", ["c1", "c2", "c3"])
@pytest.mark.parametrize("dims", [(10, 10, 1), (60, 90, 13), (120, 240, 50), (45.5, 30.2, 333)])
def test_tier_prices_are_ordered(customer_id, dims):
    width, height, quantity = dims
    item = OrderItem(material_id="m1", width=width, height=height, quantity=quantity)
    cost = cost_item(item, FOAM, registry.customer(customer_id), PricingConfig())
    economic = cost.price(DeliveryTier.ECONOMIC)
    standard = cost.price(DeliveryTier.STANDARD)
    express = cost.price(DeliveryTier.EXPRESS)
    assert economic <= standard <= express


def test_segment_missing_from_table_uses_default_margin():
    config = PricingConfig(margin=1.5, segment_margins={CustomerType.COMPLEX: 1.25})
    assert config.margin_for(CustomerType.COMPLEX) == 1.25
    assert config.margin_for(CustomerType.RECURRENT) == 1.5


def test_labor_rate_comes_from_hourly_cost():
    assert labor_rate_per_minute(PricingConfig()) == 350
    assert labor_rate_per_minute(PricingConfig(labor_cost_per_hour=6000)) == 100


def test_apply_tier_rounds_half_up():
    assert apply_tier(100, DeliveryTier.STANDARD) == 115
    assert apply_tier(1, DeliveryTier.EXPRESS) == 2


def test_material_mismatch_is_rejected():
    item = OrderItem(material_id="m2", width=10, height=10, quantity=1)
    with pytest.raises(QuoteValidationError):
        cost_item(item, FOAM, RECURRENT, PricingConfig())
