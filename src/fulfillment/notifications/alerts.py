"""New-order alert board.

Split creation raises a transient "new order" flag that the admin UI polls.
Each flag is switched off by a scheduled timer, and the timer is cancelled
as soon as the order's splits are confirmed or cancelled, so a stale timer
never outlives the order it was raised for.
"""

import threading
from typing import Callable

import structlog

logger = structlog.get_logger(__name__)


class OrderAlertBoard:
    def __init__(self, timer_factory: Callable[..., threading.Timer] = threading.Timer) -> None:
        self._timer_factory = timer_factory
        self._timers: dict[str, threading.Timer] = {}
        self._active: set[str] = set()
        self._lock = threading.Lock()

    def raise_alert(self, order_id: str, ttl_seconds: float) -> threading.Timer:
        """Flag ``order_id`` and schedule the flag to drop after ``ttl_seconds``."""
        with self._lock:
            previous = self._timers.pop(order_id, None)
            if previous is not None:
                previous.cancel()
            timer = self._timer_factory(ttl_seconds, self._expire, args=(order_id,))
            timer.daemon = True
            self._timers[order_id] = timer
            self._active.add(order_id)
        timer.start()
        logger.info("New order alert raised", order_id=order_id, ttl_seconds=ttl_seconds)
        return timer

    def _expire(self, order_id: str) -> None:
        with self._lock:
            self._timers.pop(order_id, None)
            self._active.discard(order_id)

    def clear(self, order_id: str) -> bool:
        """Drop the flag now and cancel its pending timer. Returns whether a flag was set."""
        with self._lock:
            timer = self._timers.pop(order_id, None)
            if timer is not None:
                timer.cancel()
            was_active = order_id in self._active
            self._active.discard(order_id)
        return was_active

    def is_active(self, order_id: str) -> bool:
        with self._lock:
            return order_id in self._active

    def active_orders(self) -> list[str]:
        with self._lock:
            return sorted(self._active)

    def reset(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()
            self._active.clear()
