"""Commerce platform adapter registry.

FakeCommerce is the only bundled adapter; the platform integration is
injected with set_commerce() by the deployment that owns the credentials.
"""

from fulfillment.commerce.fake_adapter import FakeCommerce
from fulfillment.commerce.port import CommercePort

_commerce_instance: CommercePort | None = None


def get_commerce() -> CommercePort:
    global _commerce_instance
    if _commerce_instance is None:
        _commerce_instance = FakeCommerce()
    return _commerce_instance


def set_commerce(commerce: CommercePort) -> None:
    global _commerce_instance
    _commerce_instance = commerce


def reset_commerce() -> None:
    global _commerce_instance
    _commerce_instance = None
