from __future__ import annotations

import logging
from typing import Iterable

from pydantic import BaseModel

from printflow.core.errors import CapacityOverrideRequired
from printflow.core.security import SupervisorAuthorizer
from printflow.core.session import SessionContext
from printflow.domain.capacity import (
    EXPRESS_OVERRIDE_THRESHOLD,
    SATURATION_THRESHOLD,
    CapacitySnapshot,
    capacity_snapshot,
)
from printflow.domain.models import Order

logger = logging.getLogger(__name__)


class CapacityOverride(BaseModel):
    confirmed: bool = False
    supervisor_key: str | None = None


class CapacityGate:
    def __init__(
        self,
        authorizer: SupervisorAuthorizer,
        max_capacity: int,
        express_threshold: int = EXPRESS_OVERRIDE_THRESHOLD,
        saturation_threshold: int = SATURATION_THRESHOLD,
    ):
        self.authorizer = authorizer
        self.max_capacity = max_capacity
        self.express_threshold = express_threshold
        self.saturation_threshold = saturation_threshold

    def snapshot(self, orders: Iterable[Order]) -> CapacitySnapshot:
        return capacity_snapshot(orders, self.max_capacity, self.express_threshold, self.saturation_threshold)

    def _supervisor_ok(self, override: CapacityOverride | None, session: SessionContext | None) -> bool:
        if override is None or not override.confirmed:
            return False
        return self.authorizer.authorize(override.supervisor_key, session)

    def check_express(
        self,
        snapshot: CapacitySnapshot,
        override: CapacityOverride | None,
        session: SessionContext | None = None,
    ) -> None:
        if not snapshot.express_requires_override:
            return
        if snapshot.saturated:
            if not self._supervisor_ok(override, session):
                raise CapacityOverrideRequired(
                    f"plant load {snapshot.load_percent}% is saturated; Express needs a supervisor override",
                    load_percent=snapshot.load_percent,
                    supervisor_required=True,
                )
        elif override is None or not override.confirmed:
            raise CapacityOverrideRequired(
                f"plant load {snapshot.load_percent}% exceeds {snapshot.express_threshold}%; confirm the Express override",
                load_percent=snapshot.load_percent,
                supervisor_required=False,
            )
        logger.info("express override accepted at load=%s%%", snapshot.load_percent)

    def check_production_entry(
        self,
        snapshot: CapacitySnapshot,
        override: CapacityOverride | None,
        session: SessionContext | None = None,
    ) -> None:
        if not snapshot.saturated:
            return
        if not self._supervisor_ok(override, session):
            raise CapacityOverrideRequired(
                f"plant load {snapshot.load_percent}% is saturated; production entry needs a supervisor override",
                load_percent=snapshot.load_percent,
                supervisor_required=True,
            )
        logger.info("saturation override accepted at load=%s%%", snapshot.load_percent)
