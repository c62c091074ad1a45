"""Runtime settings for the fulfillment domain.

Values come from environment variables, read once into an immutable
settings object. Tests swap individual values with ``override_settings``.
"""

import os
from dataclasses import dataclass, replace

INVENTORY_MODES = ("primary", "primary_with_backup", "cluster")
OUT_OF_STOCK_POLICIES = ("reject", "hold")


@dataclass(frozen=True)
class FulfillmentSettings:
    shop_id: str = "default"
    inventory_mode: str = "primary"
    out_of_stock_policy: str = "reject"
    # Courier and ERP responses can take minutes
    external_call_timeout: float = 180.0
    external_call_attempts: int = 3
    external_call_backoff: float = 0.5
    courier_webhook_secret: str = ""
    erp_base_url: str = ""
    erp_auth_token: str = ""
    courier_base_url: str = ""
    courier_access_token: str = ""
    new_order_alert_seconds: float = 5.0

    def __post_init__(self):
        if self.inventory_mode not in INVENTORY_MODES:
            raise ValueError(f"Unsupported inventory mode: {self.inventory_mode}")
        if self.out_of_stock_policy not in OUT_OF_STOCK_POLICIES:
            raise ValueError(f"Unsupported out-of-stock policy: {self.out_of_stock_policy}")
        if self.external_call_attempts < 1:
            raise ValueError("EXTERNAL_CALL_ATTEMPTS must be at least 1")

    @classmethod
    def from_env(cls) -> "FulfillmentSettings":
        return cls(
            shop_id=os.environ.get("SHOP_ID", "default"),
            inventory_mode=os.environ.get("INVENTORY_MODE", "primary"),
            out_of_stock_policy=os.environ.get("OUT_OF_STOCK_POLICY", "reject"),
            external_call_timeout=float(os.environ.get("EXTERNAL_CALL_TIMEOUT", "180")),
            external_call_attempts=int(os.environ.get("EXTERNAL_CALL_ATTEMPTS", "3")),
            external_call_backoff=float(os.environ.get("EXTERNAL_CALL_BACKOFF", "0.5")),
            courier_webhook_secret=os.environ.get("COURIER_WEBHOOK_SECRET", ""),
            erp_base_url=os.environ.get("ERP_BASE_URL", ""),
            erp_auth_token=os.environ.get("ERP_AUTH_TOKEN", ""),
            courier_base_url=os.environ.get("COURIER_BASE_URL", ""),
            courier_access_token=os.environ.get("COURIER_ACCESS_TOKEN", ""),
            new_order_alert_seconds=float(os.environ.get("NEW_ORDER_ALERT_SECONDS", "5")),
        )


_settings: FulfillmentSettings | None = None


def get_settings() -> FulfillmentSettings:
    """Return the active settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = FulfillmentSettings.from_env()
    return _settings


def override_settings(**changes) -> FulfillmentSettings:
    """Replace selected settings (useful for tests)."""
    global _settings
    _settings = replace(get_settings(), **changes)
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
