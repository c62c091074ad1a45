"""Courier adapter registry: pluggable last-mile delivery integration."""

import os

from fulfillment.courier.port import CourierPort

_courier_instance: CourierPort | None = None


def get_courier() -> CourierPort:
    """Return the configured courier adapter (singleton).

    Uses FakeCourier by default. In production, configure via
    COURIER_ADAPTER=http plus COURIER_BASE_URL, COURIER_ACCESS_TOKEN and
    COURIER_WEBHOOK_SECRET.
    """
    global _courier_instance
    if _courier_instance is None:
        adapter = os.environ.get("COURIER_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.courier.fake_adapter import FakeCourier

            _courier_instance = FakeCourier()
        elif adapter == "http":
            from fulfillment.config import get_settings
            from fulfillment.courier.http_adapter import HttpCourier

            settings = get_settings()
            _courier_instance = HttpCourier(
                settings.courier_base_url,
                settings.courier_access_token,
                settings.courier_webhook_secret,
            )
        else:
            raise ValueError(f"Unknown courier adapter: {adapter}")
    return _courier_instance


def set_courier(courier: CourierPort) -> None:
    global _courier_instance
    _courier_instance = courier


def reset_courier() -> None:
    """Reset the courier singleton (useful for testing)."""
    global _courier_instance
    _courier_instance = None
