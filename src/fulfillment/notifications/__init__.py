"""Notifier and alert-board registry.

Notification delivery is best effort: a failed notification is logged and
never blocks the transition that triggered it.
"""

import os

import structlog

from fulfillment.adapters import AdapterContext, call_external
from fulfillment.errors import ExternalCallFailure
from fulfillment.notifications.alerts import OrderAlertBoard
from fulfillment.notifications.port import NotifierPort

logger = structlog.get_logger(__name__)

_notifier_instance: NotifierPort | None = None
_alert_board: OrderAlertBoard | None = None


def get_notifier() -> NotifierPort:
    global _notifier_instance
    if _notifier_instance is None:
        adapter = os.environ.get("NOTIFIER_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.notifications.fake_adapter import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _notifier_instance


def set_notifier(notifier: NotifierPort) -> None:
    global _notifier_instance
    _notifier_instance = notifier


def reset_notifier() -> None:
    global _notifier_instance
    _notifier_instance = None


def get_alert_board() -> OrderAlertBoard:
    global _alert_board
    if _alert_board is None:
        _alert_board = OrderAlertBoard()
    return _alert_board


def reset_alert_board() -> None:
    global _alert_board
    if _alert_board is not None:
        _alert_board.reset()
    _alert_board = None


def send_notification(context: AdapterContext, event: str, split_id: str, payload: dict) -> None:
    """Notify about a split order without letting delivery problems escape."""
    notifier = get_notifier()
    try:
        result = call_external(
            "notifier.notify",
            lambda: notifier.notify(context, event, split_id, payload),
            context=context,
            attempts=1,
            split_id=split_id,
        )
    except ExternalCallFailure as exc:
        logger.warning("Notification failed", notification_event=event, split_id=split_id, error=exc.message)
        return

    if result.get("status") != "sent":
        logger.warning(
            "Notification failed",
            notification_event=event,
            split_id=split_id,
            error=result.get("error", "Unknown dispatch error"),
        )
