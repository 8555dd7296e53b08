"""Realtime fan-out to connected dashboard clients.

Every subscriber receives every event as a JSON message
``{"event": <name>, "data": <payload>}``. Nothing is persisted; the
subscriber set only exists to fan out and to expose a live count.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol

from gymdesk.metrics import realtime_events_total, realtime_subscribers
from gymdesk.schemas import CheckinOut, MetricsSnapshot

logger = logging.getLogger("gymdesk.realtime")

CHECKIN_EVENT = "checkin_event"
DASHBOARD_UPDATE = "dashboard_update"


class Subscriber(Protocol):
    async def send_json(self, data: Any) -> None: ...


@dataclass(frozen=True)
class CheckinEvent:
    """A single admission decision, ALLOWED or DENIED."""

    name: ClassVar[str] = CHECKIN_EVENT
    checkin: CheckinOut

    def payload(self) -> dict:
        return self.checkin.model_dump(mode="json")


@dataclass(frozen=True)
class DashboardCheckinEvent:
    """Dashboard nudge sent from the admission path: a check-in just happened."""

    name: ClassVar[str] = DASHBOARD_UPDATE
    checkin: CheckinOut

    def payload(self) -> dict:
        return {"type": "checkin", "data": self.checkin.model_dump(mode="json")}


@dataclass(frozen=True)
class DashboardSnapshotEvent:
    """A freshly computed aggregate snapshot."""

    name: ClassVar[str] = DASHBOARD_UPDATE
    snapshot: MetricsSnapshot

    def payload(self) -> dict:
        return self.snapshot.model_dump(mode="json")


RealtimeEvent = CheckinEvent | DashboardCheckinEvent | DashboardSnapshotEvent


class RealtimeBroadcaster:
    def __init__(self) -> None:
        self._subscribers: set[Subscriber] = set()

    def connect(self, subscriber: Subscriber) -> None:
        self._subscribers.add(subscriber)
        realtime_subscribers.set(len(self._subscribers))
        logger.info("Realtime client connected", extra={"subscribers": len(self._subscribers)})

    def disconnect(self, subscriber: Subscriber) -> None:
        self._subscribers.discard(subscriber)
        realtime_subscribers.set(len(self._subscribers))
        logger.info("Realtime client disconnected", extra={"subscribers": len(self._subscribers)})

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event_name: str, payload: Any) -> int:
        """Send to every current subscriber; returns how many received it."""
        message = {"event": event_name, "data": payload}
        delivered = 0
        # Snapshot the set: subscribers may disconnect while we are suspended in a send.
        for subscriber in list(self._subscribers):
            try:
                await subscriber.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.warning(f"Dropping realtime subscriber after failed send: {exc}", extra={"event": event_name})
                self.disconnect(subscriber)
        realtime_events_total.labels(event_name).inc()
        return delivered

    async def emit(self, event: RealtimeEvent) -> int:
        return await self.publish(event.name, event.payload())
