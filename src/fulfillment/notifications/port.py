"""Notifier port: customer and operator notifications about split orders."""

from abc import ABC, abstractmethod

from fulfillment.adapters import AdapterContext


class NotifierPort(ABC):
    """Abstract interface for notification adapters."""

    @abstractmethod
    def notify(self, context: AdapterContext, event: str, split_id: str, payload: dict) -> dict:
        """Send a notification about ``event`` on a split order.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
