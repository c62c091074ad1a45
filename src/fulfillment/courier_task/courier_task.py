"""CourierTask aggregate (CQRS): a delivery booked with the courier for one split order.

State Machine:
    OPEN → ACCEPTED → LIVE → ENDED
    {OPEN, ACCEPTED, LIVE} → CANCELLED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Identifier, String, Text, ValueObject

from fulfillment.courier_task.events import (
    CourierTaskBooked,
    CourierTaskCancelled,
    CourierTaskStatusChanged,
)
from fulfillment.domain import fulfillment


class CourierTaskStatus(Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    LIVE = "live"
    ENDED = "ended"
    CANCELLED = "cancelled"


_STATUS_FOR_CODE = {
    "ALLOTTED": CourierTaskStatus.ACCEPTED,
    "REACHED_PICKUP": CourierTaskStatus.ACCEPTED,
    "DISPATCHED": CourierTaskStatus.LIVE,
    "ARRIVED_CUSTOMER_DOORSTEP": CourierTaskStatus.LIVE,
    "DELIVERED": CourierTaskStatus.ENDED,
    "CANCELLED": CourierTaskStatus.CANCELLED,
}

_CLOSED = {CourierTaskStatus.ENDED, CourierTaskStatus.CANCELLED}


@fulfillment.value_object(part_of="CourierTask")
class PartnerInfo:
    """The rider (delivery partner) assigned to the task."""

    name = String(max_length=255)
    contact = String(max_length=50)
    vehicle_number = String(max_length=50)
    vehicle_type = String(max_length=50)
    latitude = Float()
    longitude = Float()


@fulfillment.aggregate
class CourierTask:
    split_id = Identifier(required=True)
    pickup = Text()  # JSON pickup details
    drop = Text()  # JSON drop details
    status = String(choices=CourierTaskStatus, default=CourierTaskStatus.OPEN.value)
    tracking_url = String(max_length=500)
    last_status_code = String(max_length=50)
    partner = ValueObject(PartnerInfo)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        task_id: str,
        split_id: str,
        pickup: dict,
        drop: dict,
        tracking_url: str | None = None,
        status_code: str | None = None,
    ):
        now = datetime.now(UTC)
        task = cls(
            id=task_id,
            split_id=split_id,
            pickup=json.dumps(pickup),
            drop=json.dumps(drop),
            tracking_url=tracking_url,
            last_status_code=status_code,
            created_at=now,
            updated_at=now,
        )
        task.raise_(CourierTaskBooked(task_id=task_id, split_id=split_id, tracking_url=tracking_url, booked_at=now))
        return task

    def is_closed(self) -> bool:
        return CourierTaskStatus(self.status) in _CLOSED

    def apply_status_code(self, status_code: str, partner: dict | None = None) -> bool:
        """Record a courier status code. Closed tasks ignore further updates."""
        if self.is_closed():
            return False
        code = status_code.upper()
        if partner:
            self.partner = PartnerInfo(**partner)
        self.last_status_code = code

        target = _STATUS_FOR_CODE.get(code)
        now = datetime.now(UTC)
        self.updated_at = now
        if target is None or target.value == self.status:
            return False

        self.status = target.value
        if target == CourierTaskStatus.CANCELLED:
            self.raise_(CourierTaskCancelled(task_id=str(self.id), split_id=str(self.split_id), cancelled_at=now))
        else:
            self.raise_(
                CourierTaskStatusChanged(
                    task_id=str(self.id),
                    split_id=str(self.split_id),
                    status=target.value,
                    status_code=code,
                    changed_at=now,
                )
            )
        return True

    def end(self) -> bool:
        return self.apply_status_code("DELIVERED")

    def cancel(self) -> bool:
        return self.apply_status_code("CANCELLED")
