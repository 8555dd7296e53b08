from datetime import datetime
from gymdesk.models import CheckinStatus
from gymdesk.realtime import (
    CHECKIN_EVENT, DASHBOARD_UPDATE, CheckinEvent, DashboardCheckinEvent, DashboardSnapshotEvent, RealtimeBroadcaster
)
from gymdesk.schemas import CheckinOut, MetricsSnapshot


class FakeSocket:
    def __init__(self, broken=False):
        self.messages = []
        self.broken = broken

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("connection closed")
        self.messages.append(data)


def sample_checkin():
    return CheckinOut(
        id="c1",
        user_id="u1",
        membership_id="m1",
        status=CheckinStatus.ALLOWED,
        timestamp=datetime(2026, 5, 1, 9, 0),
    )


async def test_publish_reaches_every_subscriber():
    broadcaster = RealtimeBroadcaster()
    a, b = FakeSocket(), FakeSocket()
    broadcaster.connect(a)
    broadcaster.connect(b)
    delivered = await broadcaster.publish("ping", {"x": 1})
    assert delivered == 2
    assert a.messages == [{"event": "ping", "data": {"x": 1}}]
    assert b.messages == a.messages

async def test_publish_without_subscribers_is_a_noop():
    broadcaster = RealtimeBroadcaster()
    assert await broadcaster.publish("ping", {}) == 0

async def test_failed_subscriber_is_dropped():
    broadcaster = RealtimeBroadcaster()
    good, bad = FakeSocket(), FakeSocket(broken=True)
    broadcaster.connect(good)
    broadcaster.connect(bad)
    assert await broadcaster.publish("ping", {}) == 1
    assert broadcaster.subscriber_count() == 1
    assert len(good.messages) == 1

async def test_disconnect_updates_count():
    broadcaster = RealtimeBroadcaster()
    sock = FakeSocket()
    broadcaster.connect(sock)
    assert broadcaster.subscriber_count() == 1
    broadcaster.disconnect(sock)
    broadcaster.disconnect(sock)
    assert broadcaster.subscriber_count() == 0

async def test_event_payloads():
    broadcaster = RealtimeBroadcaster()
    sock = FakeSocket()
    broadcaster.connect(sock)
    checkin = sample_checkin()
    snapshot = MetricsSnapshot(
        timestamp=datetime(2026, 5, 1, 9, 0),
        checkins_today=1,
        active_memberships=2,
        expired_memberships=3,
        expiring_soon=0,
    )
    await broadcaster.emit(CheckinEvent(checkin))
    await broadcaster.emit(DashboardCheckinEvent(checkin))
    await broadcaster.emit(DashboardSnapshotEvent(snapshot))

    first, second, third = sock.messages
    assert first["event"] == CHECKIN_EVENT
    assert first["data"]["id"] == "c1"
    assert first["data"]["status"] == "ALLOWED"
    assert second == {"event": DASHBOARD_UPDATE, "data": {"type": "checkin", "data": first["data"]}}
    assert third["event"] == DASHBOARD_UPDATE
    assert third["data"]["active_memberships"] == 2
    assert third["data"]["timestamp"] == "2026-05-01T09:00:00"
