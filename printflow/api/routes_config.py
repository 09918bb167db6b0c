from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends

from printflow.core.security import get_session_context
from printflow.core.session import SessionContext
from printflow.runtime import Runtime, get_runtime

router = APIRouter(tags=["config"])


@router.get("/capacity")
def get_capacity(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.capacity().to_dict()


@router.get("/config/pricing")
def get_pricing_config(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.config_store.get().model_dump(mode="json")


@router.patch("/config/pricing")
def update_pricing_config(
    changes: dict[str, Any] = Body(...),
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.config_store.update(changes, session).model_dump(mode="json")


@router.get("/policy/transitions")
def get_transition_policy(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return runtime.guard.policy_manifest()


@router.get("/reference/materials")
def list_materials(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    return {"materials": [m.model_dump(mode="json") for m in runtime.registry.materials()]}


@router.get("/reference/customers")
def list_customers(
    session: SessionContext = Depends(get_session_context),
    runtime: Runtime = Depends(get_runtime),
):
    customers = runtime.registry.customers()
    if session.customer_id is not None:
        customers = [c for c in customers if c.id == session.customer_id]
    return {"customers": [c.model_dump(mode="json") for c in customers]}
