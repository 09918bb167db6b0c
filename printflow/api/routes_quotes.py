from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from printflow.api.serializers import order_to_dict
from printflow.core.security import get_session_context
from printflow.core.session import SessionContext
from printflow.domain.models import DeliveryTier
from printflow.runtime import Runtime, get_runtime
from printflow.workflow.capacity_gate import CapacityOverride
from printflow.workflow.quoting import QuoteRequest

router = APIRouter(tags=["quotes"])


class QuoteOrderRequest(BaseModel):
    quote: QuoteRequest
    tier: DeliveryTier = DeliveryTier.STANDARD
    override: CapacityOverride | None = None


class DraftRequest(BaseModel):
    text: str = Field(min_length=1)
    customer_id: str


class RepriceRequest(BaseModel):
    tier: DeliveryTier = DeliveryTier.STANDARD


@router.post("/quotes/estimate")
def estimate_quote(
    req: QuoteRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.quoting.estimate(req, session).to_dict()


@router.post("/quotes/orders", status_code=201)
def create_quote_order(
    req: QuoteOrderRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    order = runtime.quoting.create_order(req.quote, req.tier, session, req.override)
    return order_to_dict(order)


@router.post("/orders/{order_id}/reprice")
def reprice_order(
    order_id: str,
    req: RepriceRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return order_to_dict(runtime.quoting.price_order(order_id, req.tier, session))


@router.post("/drafts")
def draft_quote(
    req: DraftRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.drafts.draft(req.text, req.customer_id, session).to_dict()


@router.post("/drafts/orders", status_code=201)
def create_draft_order(
    req: DraftRequest,
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return order_to_dict(runtime.drafts.create_from_draft(req.text, req.customer_id, session))
