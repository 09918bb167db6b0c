from __future__ import annotations

import pytest

from printflow.core.config import Settings
from printflow.core.errors import PermissionDenied, QuoteValidationError
from printflow.core.security import session_from_api_key
from printflow.domain.pipeline import Role
from printflow.workflow.pricing_config import PricingConfigStore


def test_insecure_defaults_are_rejected_outside_dev():
    with pytest.raises(ValueError) as exc_info:
        Settings(env="prod")
    assert "PF_ADMIN_API_KEY" in str(exc_info.value)
    assert "PF_SUPERVISOR_KEYS" in str(exc_info.value)


def test_thresholds_must_be_ordered():
    with pytest.raises(ValueError):
        Settings(express_override_threshold=90, saturation_threshold=80)


def test_api_keys_map_to_sessions():
    settings = Settings()
    assert session_from_api_key(settings.operations_api_key, settings).role == Role.OPERATIONS
    client = session_from_api_key("pf-client-c3-dev-key", settings)
    assert client.role == Role.CLIENT
    assert client.customer_id == "c3"
    assert session_from_api_key("unknown", settings) is None


def test_pricing_config_store_validates_partial_updates(sessions):
    store = PricingConfigStore()
    seen = []
    store.subscribe(seen.append)

    updated = store.update({"foam_price": 16000}, sessions["superadmin"])
    assert updated.foam_price == 16000
    assert updated.vinyl_price == 3800
    assert seen[-1].foam_price == 16000

    with pytest.raises(PermissionDenied):
        store.update({"foam_price": 1}, sessions["operations"])
    with pytest.raises(QuoteValidationError) as exc_info:
        store.update({"labor_cost_per_hour": -5}, sessions["admin"])
    assert exc_info.value.fields == ["labor_cost_per_hour"]
    assert store.get().foam_price == 16000
