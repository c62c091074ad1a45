"""Courier task domain events."""

from protean.fields import DateTime, Identifier, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="CourierTask")
class CourierTaskBooked:
    __version__ = 1

    task_id = Identifier(required=True)
    split_id = Identifier(required=True)
    tracking_url = String()
    booked_at = DateTime(required=True)


@fulfillment.event(part_of="CourierTask")
class CourierTaskStatusChanged:
    __version__ = 1

    task_id = Identifier(required=True)
    split_id = Identifier(required=True)
    status = String(required=True)
    status_code = String(required=True)
    changed_at = DateTime(required=True)


@fulfillment.event(part_of="CourierTask")
class CourierTaskCancelled:
    __version__ = 1

    task_id = Identifier(required=True)
    split_id = Identifier(required=True)
    cancelled_at = DateTime(required=True)
