"""StoreSplit FastAPI application.

Web server for the fulfillment domain. Commands are processed synchronously
within the HTTP request, each request wrapped in the domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

from uuid import uuid4

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay and the log level.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fulfillment.domain import fulfillment  # noqa: E402
from fulfillment.utils.logging import add_context, clear_context

fulfillment.init()

# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="StoreSplit API",
    description="Multi-store order splitting and fulfillment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the fulfillment domain context and bind a request id for logging."""
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    add_context(request_id=request_id)
    try:
        with fulfillment.domain_context():
            response = await call_next(request)
    finally:
        clear_context()
    response.headers["X-Request-ID"] = request_id
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from fulfillment.api.errors import register_exception_handlers  # noqa: E402
from fulfillment.api.routes import (  # noqa: E402
    adapter_router,
    courier_router,
    inventory_router,
    order_router,
    split_order_router,
    store_router,
)

app.include_router(store_router)
app.include_router(inventory_router)
app.include_router(order_router)
app.include_router(split_order_router)
app.include_router(courier_router)
app.include_router(adapter_router)
register_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"fulfillment": {"name": fulfillment.name}}})
