from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from printflow import __version__
from printflow.api.routes_config import router as config_router
from printflow.api.routes_orders import router as orders_router
from printflow.api.routes_quotes import router as quotes_router
from printflow.core.config import get_settings
from printflow.core.errors import (
    CapacityOverrideRequired,
    DragSessionConflict,
    ExternalDraftFailure,
    InfeasibleGeometry,
    OrderNotFound,
    PermissionDenied,
    PrintflowError,
    QuoteValidationError,
)
from printflow.core.logging import configure_logging
from printflow.domain.pipeline import PIPELINE_VERSION
from printflow.governance import InvalidTransition
from printflow.runtime import get_runtime

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name, version=__version__)

ERROR_STATUS: dict[type[PrintflowError], int] = {
    InvalidTransition: 403,
    PermissionDenied: 403,
    OrderNotFound: 404,
    QuoteValidationError: 422,
    InfeasibleGeometry: 422,
    CapacityOverrideRequired: 409,
    DragSessionConflict: 409,
    ExternalDraftFailure: 502,
}


def _status_for(exc: PrintflowError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return 400


@app.on_event("startup")
def on_startup() -> None:
    runtime = get_runtime()
    logger.info(
        "printflow ready: pipeline=%s orders=%s load=%s%%",
        PIPELINE_VERSION,
        len(runtime.store.all()),
        runtime.capacity().load_percent,
    )


@app.exception_handler(PrintflowError)
async def printflow_error_handler(_: Request, exc: PrintflowError):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("request failed: %s", exc)
    return JSONResponse(status_code=status_code, content=exc.to_payload())


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok", "pipeline_version": PIPELINE_VERSION}


app.include_router(orders_router)
app.include_router(quotes_router)
app.include_router(config_router)
