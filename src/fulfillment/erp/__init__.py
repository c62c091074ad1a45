"""ERP adapter registry.

Uses FakeErp by default. Set ERP_ADAPTER=http (with ERP_BASE_URL and
ERP_AUTH_TOKEN) to talk to a real ERP.
"""

import os

from fulfillment.erp.port import ErpPort

_erp_instance: ErpPort | None = None


def get_erp() -> ErpPort:
    """Return the configured ERP adapter (singleton)."""
    global _erp_instance
    if _erp_instance is None:
        adapter = os.environ.get("ERP_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.erp.fake_adapter import FakeErp

            _erp_instance = FakeErp()
        elif adapter == "http":
            from fulfillment.config import get_settings
            from fulfillment.erp.http_adapter import HttpErp

            settings = get_settings()
            _erp_instance = HttpErp(settings.erp_base_url, settings.erp_auth_token)
        else:
            raise ValueError(f"Unknown ERP adapter: {adapter}")
    return _erp_instance


def set_erp(erp: ErpPort) -> None:
    """Override the active ERP adapter (useful for tests)."""
    global _erp_instance
    _erp_instance = erp


def reset_erp() -> None:
    """Reset the ERP singleton (useful for testing)."""
    global _erp_instance
    _erp_instance = None
