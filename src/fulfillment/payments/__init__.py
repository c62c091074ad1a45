"""Payment adapter factory.

Provides get_payments() / set_payments() to swap implementations. Only the
fake provider ships with the service; production deployments inject their
provider adapter with set_payments().
"""

from fulfillment.payments.fake_adapter import FakePayments
from fulfillment.payments.port import PaymentPort

_current_payments: PaymentPort | None = None


def get_payments() -> PaymentPort:
    """Return the current payment adapter. Defaults to FakePayments."""
    global _current_payments
    if _current_payments is None:
        _current_payments = FakePayments()
    return _current_payments


def set_payments(payments: PaymentPort) -> None:
    """Override the active payment adapter (useful for tests)."""
    global _current_payments
    _current_payments = payments


def reset_payments() -> None:
    """Reset to default payment adapter."""
    global _current_payments
    _current_payments = None
