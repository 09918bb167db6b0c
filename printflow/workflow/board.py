from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from pydantic import BaseModel

from printflow.core.errors import DragSessionConflict, PermissionDenied, QuoteValidationError
from printflow.core.session import SessionContext
from printflow.domain.models import Order
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import FileStatus, Stage, next_stage
from printflow.governance import Intent, InvalidTransition, TransitionGuard
from printflow.workflow.capacity_gate import CapacityGate, CapacityOverride

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DragSession:
    order_id: str
    source_stage: Stage
    source_index: int
    session: SessionContext


@dataclass(frozen=True)
class PreviewOverlay:
    """Where a dragged card would land. Never written to the order store."""

    order_id: str
    source_stage: Stage
    target_stage: Stage
    allowed: bool
    reason: str

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "source_stage": self.source_stage.value,
            "target_stage": self.target_stage.value,
            "allowed": self.allowed,
            "reason": self.reason,
        }


class ClientApproval(BaseModel):
    signer_id: str = ""
    signed: bool = False


class BoardService:
    def __init__(self, store: OrderStore, guard: TransitionGuard, gate: CapacityGate):
        self.store = store
        self.guard = guard
        self.gate = gate
        self._lock = threading.Lock()
        self._drag: DragSession | None = None

    @property
    def active_drag(self) -> DragSession | None:
        return self._drag

    def begin_drag(self, order_id: str, session: SessionContext) -> DragSession:
        order = self.store.get(order_id)
        if not self.guard.can_reorder(session.role):
            raise InvalidTransition(self.guard.evaluate(session.role, order.status, order.status, intent="drag"))
        with self._lock:
            if self._drag is not None:
                raise DragSessionConflict(f"order {self._drag.order_id} is already being dragged")
            drag = DragSession(
                order_id=order.id,
                source_stage=order.status,
                source_index=self.store.index_of(order.id),
                session=session,
            )
            self._drag = drag
        logger.debug("drag started order=%s stage=%s user=%s", order.id, order.status, session.user_id)
        return drag

    def _require_drag(self) -> DragSession:
        drag = self._drag
        if drag is None:
            raise DragSessionConflict("no drag in progress")
        return drag

    def preview(self, target_stage: Stage) -> PreviewOverlay:
        drag = self._require_drag()
        target = Stage(target_stage)
        order = self.store.get(drag.order_id)
        decision = self.guard.evaluate(
            drag.session.role,
            order.status,
            target,
            order_owner_id=order.customer_id,
            acting_customer_id=drag.session.customer_id,
            intent="drag",
        )
        return PreviewOverlay(
            order_id=order.id,
            source_stage=order.status,
            target_stage=target,
            allowed=decision.allowed,
            reason=decision.reason,
        )

    def cancel_drag(self) -> None:
        with self._lock:
            drag, self._drag = self._drag, None
        if drag is not None:
            logger.debug("drag cancelled order=%s", drag.order_id)

    def end_drag(
        self,
        target_stage: Stage | None,
        target_index: int | None = None,
        override: CapacityOverride | None = None,
    ) -> Order:
        drag = self._require_drag()
        try:
            if target_stage is None:
                logger.debug("drag dropped outside the board order=%s", drag.order_id)
                return self.store.get(drag.order_id)
            return self._apply(drag.order_id, Stage(target_stage), drag.session, "drag", target_index, override)
        finally:
            self.cancel_drag()

    def _apply(
        self,
        order_id: str,
        target: Stage,
        session: SessionContext,
        intent: Intent,
        target_index: int | None,
        override: CapacityOverride | None,
    ) -> Order:
        order = self.store.get(order_id)

        if order.status == target:
            self.guard.enforce(session.role, target, target, intent=intent)
            if target_index is not None:
                last = len(self.store.column_ids(target)) - 1
                self.store.reorder(target, self.store.index_of(order_id), min(max(0, target_index), last))
            return self.store.get(order_id)

        self.guard.enforce(
            session.role,
            order.status,
            target,
            order_owner_id=order.customer_id,
            acting_customer_id=session.customer_id,
            intent=intent,
        )
        if target == Stage.IN_PRODUCTION:
            self.gate.check_production_entry(self.gate.snapshot(self.store.all()), override, session)
        return self.store.set_status(order_id, target, target_index)

    def move(
        self,
        order_id: str,
        target_stage: Stage,
        session: SessionContext,
        target_index: int | None = None,
        override: CapacityOverride | None = None,
    ) -> Order:
        self.begin_drag(order_id, session)
        return self.end_drag(target_stage, target_index, override)

    def advance(self, order_id: str, session: SessionContext, override: CapacityOverride | None = None) -> Order:
        order = self.store.get(order_id)
        target = next_stage(order.status)
        if target is None:
            raise QuoteValidationError(f"order {order_id} is already in the last stage", fields=["status"])
        return self._apply(order_id, target, session, "action", None, override)

    def approve(
        self,
        order_id: str,
        approval: ClientApproval,
        session: SessionContext,
        override: CapacityOverride | None = None,
    ) -> Order:
        order = self.store.get(order_id)
        self.guard.enforce(
            session.role,
            order.status,
            Stage.IN_PRODUCTION,
            order_owner_id=order.customer_id,
            acting_customer_id=session.customer_id,
            intent="approve",
        )
        missing = []
        if not approval.signer_id.strip():
            missing.append("signer_id")
        if not approval.signed:
            missing.append("signed")
        if missing:
            raise QuoteValidationError("approval needs a signer and a signature", fields=missing)

        self.gate.check_production_entry(self.gate.snapshot(self.store.all()), override, session)
        approved = self.store.set_status(order_id, Stage.IN_PRODUCTION)
        logger.info("order approved id=%s signer=%s user=%s", order_id, approval.signer_id, session.user_id)
        return approved

    def reorder(self, stage: Stage, from_index: int, to_index: int, session: SessionContext) -> list[str]:
        if not self.guard.can_reorder(session.role):
            raise InvalidTransition(self.guard.evaluate(session.role, stage, stage, intent="drag"))
        return self.store.reorder(stage, from_index, to_index)

    def set_file_status(self, order_id: str, flag: FileStatus, session: SessionContext) -> Order:
        if not self.guard.can_reorder(session.role):
            raise PermissionDenied(f"role={session.role} cannot change file status")
        return self.store.set_file_status(order_id, flag)
