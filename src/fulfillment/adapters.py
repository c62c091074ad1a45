"""Shared plumbing for calls to external collaborators.

Every adapter call receives an explicit ``AdapterContext`` instead of reading
ambient shop or session state, and goes through ``call_external`` so that it
is retried a fixed number of times. The context's ``timeout`` is handed to
the adapter's transport (httpx for the HTTP adapters), which reports an
expired call as ``ExternalCallFailure(timed_out=True)``. Calls run on the
caller's thread.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar
from uuid import uuid4

import structlog

from fulfillment.config import get_settings
from fulfillment.errors import ExternalCallFailure

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class AdapterContext:
    """Per-call context handed to every adapter."""

    shop_id: str
    timeout: float
    request_id: str = field(default_factory=lambda: uuid4().hex)


def adapter_context(request_id: str | None = None) -> AdapterContext:
    settings = get_settings()
    if request_id:
        return AdapterContext(shop_id=settings.shop_id, timeout=settings.external_call_timeout, request_id=request_id)
    return AdapterContext(shop_id=settings.shop_id, timeout=settings.external_call_timeout)


def call_external(
    operation: str,
    fn: Callable[[], T],
    *,
    context: AdapterContext,
    attempts: int | None = None,
    backoff: float | None = None,
    **log_fields,
) -> T:
    """Run ``fn``, retrying transport failures.

    A timeout reported by the transport counts as a failure, never as
    success. Rejections raised with ``retryable=False`` are surfaced
    immediately. When the last attempt fails an operational alert is logged
    and ``ExternalCallFailure`` is raised.
    """
    settings = get_settings()
    attempts = attempts or settings.external_call_attempts
    backoff = settings.external_call_backoff if backoff is None else backoff

    last_error: ExternalCallFailure | None = None
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except ExternalCallFailure as exc:
            if not exc.retryable:
                logger.warning(
                    "External call rejected",
                    operation=operation,
                    error=exc.message,
                    request_id=context.request_id,
                    **log_fields,
                )
                raise
            last_error = exc

        logger.warning(
            "External call failed",
            operation=operation,
            attempt=attempt,
            attempts=attempts,
            error=last_error.message,
            request_id=context.request_id,
            **log_fields,
        )
        if attempt < attempts and backoff:
            time.sleep(backoff * attempt)

    logger.error(
        "External call exhausted retries",
        operation=operation,
        attempts=attempts,
        error=last_error.message,
        request_id=context.request_id,
        **log_fields,
    )
    raise ExternalCallFailure(
        last_error.message,
        operation=operation,
        timed_out=last_error.timed_out,
        **log_fields,
    )
