from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from printflow.api.serializers import column_to_dict, now_utc, order_to_dict
from printflow.core.errors import OrderNotFound
from printflow.core.security import get_session_context
from printflow.core.session import SessionContext
from printflow.domain.orders.views import build_board, production_queue
from printflow.domain.pipeline import PIPELINE_VERSION, FileStatus, Role, Stage
from printflow.runtime import Runtime, get_runtime
from printflow.workflow.board import ClientApproval
from printflow.workflow.capacity_gate import CapacityOverride

router = APIRouter(tags=["orders"])


class MoveRequest(BaseModel):
    target_stage: Stage
    target_index: int | None = Field(default=None, ge=0)
    override: CapacityOverride | None = None


class AdvanceRequest(BaseModel):
    override: CapacityOverride | None = None


class ApproveRequest(BaseModel):
    signer_id: str = ""
    signed: bool = False
    override: CapacityOverride | None = None


class FileStatusRequest(BaseModel):
    file_status: FileStatus


class ReorderRequest(BaseModel):
    stage: Stage
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)


def _visible_order(runtime: Runtime, order_id: str, session: SessionContext):
    order = runtime.store.get(order_id)
    if session.role == Role.CLIENT and order.customer_id != session.customer_id:
        raise OrderNotFound(order_id)
    return order


@router.get("/orders")
def list_orders(
    stage: Stage | None = Query(default=None),
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    now = now_utc()
    orders = runtime.store.query(session, stage)
    return {"count": len(orders), "orders": [order_to_dict(o, now) for o in orders]}


@router.get("/orders/{order_id}")
def get_order(
    order_id: str,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return order_to_dict(_visible_order(runtime, order_id, session))


@router.post("/orders/{order_id}/move")
def move_order(
    order_id: str,
    req: MoveRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    order = runtime.board.move(order_id, req.target_stage, session, req.target_index, req.override)
    return order_to_dict(order)


@router.post("/orders/{order_id}/advance")
def advance_order(
    order_id: str,
    req: AdvanceRequest | None = None,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    order = runtime.board.advance(order_id, session, req.override if req else None)
    return order_to_dict(order)


@router.post("/orders/{order_id}/approve")
def approve_order(
    order_id: str,
    req: ApproveRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    approval = ClientApproval(signer_id=req.signer_id, signed=req.signed)
    order = runtime.board.approve(order_id, approval, session, req.override)
    return order_to_dict(order)


@router.put("/orders/{order_id}/file-status")
def set_file_status(
    order_id: str,
    req: FileStatusRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    order = runtime.board.set_file_status(order_id, req.file_status, session)
    return order_to_dict(order)


@router.get("/board")
def get_board(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    now = now_utc()
    return {
        "pipeline_version": PIPELINE_VERSION,
        "can_drag": runtime.guard.can_reorder(session.role),
        "capacity": runtime.capacity().to_dict(),
        "columns": [column_to_dict(c, now) for c in build_board(runtime.store, session)],
    }


@router.post("/board/reorder")
def reorder_column(
    req: ReorderRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    ids = runtime.board.reorder(req.stage, req.from_index, req.to_index, session)
    return {"stage": req.stage.value, "order_ids": ids}


@router.get("/production/queue")
def get_production_queue(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    now = now_utc()
    queue = production_queue(runtime.store.query(session))
    return {
        "ready": [order_to_dict(o, now) for o in queue.ready],
        "pending": [order_to_dict(o, now) for o in queue.pending],
    }
