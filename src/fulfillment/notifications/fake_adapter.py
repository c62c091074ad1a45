"""Fake notifier: records notifications in memory for test assertions."""

from uuid import uuid4

from fulfillment.adapters import AdapterContext
from fulfillment.notifications.port import NotifierPort


class FakeNotifier(NotifierPort):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, context: AdapterContext, event: str, split_id: str, payload: dict) -> dict:
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append({"message_id": message_id, "event": event, "split_id": split_id, "payload": payload})
        return {"message_id": message_id, "status": "sent"}

    def events_for(self, split_id: str) -> list[str]:
        return [n["event"] for n in self.sent if n["split_id"] == split_id]
