from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import lru_cache

from sqlalchemy.exc import SQLAlchemyError

from printflow.core.config import Settings, get_settings
from printflow.core.security import KeyringSupervisorAuthorizer
from printflow.domain.capacity import CapacitySnapshot
from printflow.domain.models import DeliveryTier, Order, PricingConfig
from printflow.domain.orders.store import OrderStore
from printflow.domain.registry import ReferenceRegistry
from printflow.governance import TransitionGuard, get_transition_guard
from printflow.integrations.drafts import DraftService, build_draft_provider
from printflow.persistence.db import init_db
from printflow.persistence.snapshot import SnapshotRepository, SnapshotState, seed_state
from printflow.workflow.board import BoardService
from printflow.workflow.capacity_gate import CapacityGate
from printflow.workflow.pricing_config import PricingConfigStore
from printflow.workflow.quoting import QuoteService

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    settings: Settings
    registry: ReferenceRegistry
    config_store: PricingConfigStore
    store: OrderStore
    guard: TransitionGuard
    gate: CapacityGate
    board: BoardService
    quoting: QuoteService
    drafts: DraftService
    snapshots: SnapshotRepository | None = None
    snapshot_stale: bool = False
    _save_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def capacity(self) -> CapacitySnapshot:
        return self.gate.snapshot(self.store.all())

    def save_snapshot(self) -> None:
        if self.snapshots is None:
            return
        # State is read inside the lock; writes land in order.
        with self._save_lock:
            self.snapshots.save(self.store, self.config_store.get())
            self.snapshot_stale = False

    def _persist_after_change(self, reason: str) -> None:
        try:
            self.save_snapshot()
        except SQLAlchemyError:
            self.snapshot_stale = True
            logger.exception("snapshot save failed after %s, in-memory state kept", reason)

    def _on_order_change(self, action: str, order: Order) -> None:
        logger.debug("persisting after %s on order=%s", action, order.id)
        self._persist_after_change(f"{action} on order={order.id}")

    def _on_config_change(self, config: PricingConfig) -> None:
        self._persist_after_change("pricing config update")


def build_runtime(settings: Settings | None = None, persist: bool = True) -> Runtime:
    settings = settings or get_settings()

    snapshots: SnapshotRepository | None = None
    state: SnapshotState
    if persist and settings.load_snapshot_on_startup:
        init_db()
        snapshots = SnapshotRepository(settings.store_name)
        state = snapshots.load()
    else:
        state = seed_state()

    registry = ReferenceRegistry()
    config_store = PricingConfigStore(state.pricing_config)
    store = OrderStore(state.orders, state.columns)
    guard = get_transition_guard()
    gate = CapacityGate(
        KeyringSupervisorAuthorizer(settings.supervisor_keys),
        max_capacity=settings.plant_max_capacity,
        express_threshold=settings.express_override_threshold,
        saturation_threshold=settings.saturation_threshold,
    )
    lead_days = {DeliveryTier(tier): days for tier, days in settings.tier_lead_days().items()}
    quoting = QuoteService(
        registry,
        config_store,
        store,
        gate,
        lead_days=lead_days,
        plate_width=settings.plate_width_cm,
        plate_height=settings.plate_height_cm,
    )
    drafts = DraftService(
        build_draft_provider(settings),
        registry,
        quoting,
        store,
        standard_lead_days=lead_days[DeliveryTier.STANDARD],
    )

    runtime = Runtime(
        settings=settings,
        registry=registry,
        config_store=config_store,
        store=store,
        guard=guard,
        gate=gate,
        board=BoardService(store, guard, gate),
        quoting=quoting,
        drafts=drafts,
        snapshots=snapshots,
    )
    if snapshots is not None:
        store.subscribe(runtime._on_order_change)
        config_store.subscribe(runtime._on_config_change)
        if state.seeded:
            runtime.save_snapshot()
    logger.info(
        "runtime ready orders=%s pipeline=%s seeded=%s persist=%s",
        len(store.all()),
        guard.policy.version,
        state.seeded,
        snapshots is not None,
    )
    return runtime


@lru_cache(maxsize=1)
def get_runtime() -> Runtime:
    return build_runtime()
