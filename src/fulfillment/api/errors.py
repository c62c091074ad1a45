"""HTTP mapping of fulfillment errors.

Protean's own handlers cover plain ``ValidationError`` (400) and
``ObjectNotFoundError`` (404). The domain error kinds and a lost optimistic
concurrency race (``ExpectedVersionError``, 409) are mapped here on top of
them; FastAPI resolves the most specific handler first.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ExpectedVersionError
from protean.integrations.fastapi import register_exception_handlers as register_protean_handlers

from fulfillment.errors import (
    ExternalCallFailure,
    InvalidTransition,
    MissingLinkage,
    OutOfStock,
    SplitPersistenceFailure,
    StaleInventoryRecord,
)

logger = structlog.get_logger(__name__)


def _rule_violation(kind: str):
    async def handler(request: Request, exc) -> JSONResponse:
        return JSONResponse(status_code=409, content={"error": kind, "detail": exc.messages})

    return handler


async def _persistence_failure(request: Request, exc: SplitPersistenceFailure) -> JSONResponse:
    logger.error("Split persistence failed", path=request.url.path, error=exc.message, **exc.context)
    return JSONResponse(status_code=500, content={"error": "split_persistence_failure", "detail": exc.message})


async def _external_call_failure(request: Request, exc: ExternalCallFailure) -> JSONResponse:
    return JSONResponse(
        status_code=502,
        content={
            "error": "external_call_failure",
            "detail": exc.message,
            "operation": exc.operation,
            "timed_out": exc.timed_out,
        },
    )


async def _concurrent_update(request: Request, exc: ExpectedVersionError) -> JSONResponse:
    logger.warning("Concurrent update lost", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=409, content={"error": "concurrent_update", "detail": str(exc)})


async def _missing_linkage(request: Request, exc: MissingLinkage) -> JSONResponse:
    return JSONResponse(status_code=422, content={"error": "missing_linkage", "detail": exc.message})


def register_exception_handlers(app: FastAPI) -> None:
    register_protean_handlers(app)
    app.add_exception_handler(OutOfStock, _rule_violation("out_of_stock"))
    app.add_exception_handler(InvalidTransition, _rule_violation("invalid_transition"))
    app.add_exception_handler(StaleInventoryRecord, _rule_violation("stale_inventory_record"))
    app.add_exception_handler(SplitPersistenceFailure, _persistence_failure)
    app.add_exception_handler(ExternalCallFailure, _external_call_failure)
    app.add_exception_handler(MissingLinkage, _missing_linkage)
    app.add_exception_handler(ExpectedVersionError, _concurrent_update)
