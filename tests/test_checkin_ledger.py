import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from gymdesk.errors import MembershipInactive, NotFound
from gymdesk.models import Base, User, Checkin, CheckinStatus, Membership, MembershipStatus, Role
from gymdesk.realtime import CHECKIN_EVENT, DASHBOARD_UPDATE
from gymdesk.repository import PersistenceGateway
from gymdesk.services.admission import MembershipAdmissionOracle
from gymdesk.services.checkins import CheckinLedger, DENIED_NOTE
from gymdesk.utils import utcnow


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    async def emit(self, event):
        self.events.append((event.name, event.payload()))
        return 1


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/ledger.db", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()

@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()

@pytest.fixture
def ledger(session_factory, broadcaster):
    gateway = PersistenceGateway(session_factory)
    return CheckinLedger(gateway, MembershipAdmissionOracle(gateway), broadcaster)

def make_member(session_factory, email, end_in=timedelta(days=10)):
    db = session_factory()
    user = User(email=email, role=Role.CLIENT)
    db.add(user)
    db.flush()
    membership = None
    if end_in is not None:
        membership = Membership(
            user_id=user.id,
            status=MembershipStatus.ACTIVE,
            start_date=utcnow() - timedelta(days=1),
            end_date=utcnow() + end_in,
            currency="MXN",
        )
        db.add(membership)
    db.commit()
    ids = (user.id, membership.id if membership else None)
    db.close()
    return ids

def all_checkins(session_factory):
    db = session_factory()
    rows = db.query(Checkin).all()
    db.close()
    return rows


async def test_allowed_checkin_is_recorded_and_broadcast(ledger, session_factory, broadcaster):
    user_id, membership_id = make_member(session_factory, "ok@gym.test")
    checkin = await ledger.record_admission(user_id, notes="front door")

    assert checkin.status == CheckinStatus.ALLOWED
    assert checkin.membership_id == membership_id
    assert checkin.notes == "front door"
    assert checkin.user.email == "ok@gym.test"

    rows = all_checkins(session_factory)
    assert len(rows) == 1
    assert rows[0].status == CheckinStatus.ALLOWED

    assert [name for name, _ in broadcaster.events] == [CHECKIN_EVENT, DASHBOARD_UPDATE]
    assert broadcaster.events[0][1]["id"] == checkin.id
    assert broadcaster.events[1][1]["type"] == "checkin"
    assert broadcaster.events[1][1]["data"]["id"] == checkin.id


async def test_denied_checkin_is_persisted_and_announced_before_error(ledger, session_factory, broadcaster):
    user_id, _ = make_member(session_factory, "lapsed@gym.test", end_in=-timedelta(hours=1))

    with pytest.raises(MembershipInactive) as excinfo:
        await ledger.record_admission(user_id, notes="ignored")

    denied = excinfo.value.checkin
    assert denied.status == CheckinStatus.DENIED
    assert denied.membership_id is None
    assert denied.notes == DENIED_NOTE
    assert excinfo.value.status_code == 403
    assert excinfo.value.code == "MEMBERSHIP_INACTIVE"

    rows = all_checkins(session_factory)
    assert len(rows) == 1
    assert rows[0].id == denied.id
    assert rows[0].status == CheckinStatus.DENIED

    assert [name for name, _ in broadcaster.events] == [CHECKIN_EVENT, DASHBOARD_UPDATE]
    assert broadcaster.events[0][1]["status"] == "DENIED"


async def test_user_without_any_membership_is_denied(ledger, session_factory):
    user_id, _ = make_member(session_factory, "new@gym.test", end_in=None)
    with pytest.raises(MembershipInactive):
        await ledger.record_admission(user_id)
    assert len(all_checkins(session_factory)) == 1


async def test_unknown_user_writes_nothing(ledger, session_factory, broadcaster):
    with pytest.raises(NotFound):
        await ledger.record_admission("11111111-1111-1111-1111-111111111111")
    assert all_checkins(session_factory) == []
    assert broadcaster.events == []


async def test_repeated_attempts_are_each_recorded(ledger, session_factory):
    user_id, _ = make_member(session_factory, "twice@gym.test")
    await ledger.record_admission(user_id)
    await ledger.record_admission(user_id)
    assert len(all_checkins(session_factory)) == 2


async def test_listings(ledger, session_factory):
    user_id, _ = make_member(session_factory, "list@gym.test")
    other_id, _ = make_member(session_factory, "other@gym.test")
    await ledger.record_admission(user_id)
    await ledger.record_admission(other_id)

    db = session_factory()
    db.add(Checkin(user_id=user_id, status=CheckinStatus.ALLOWED, timestamp=datetime(2020, 1, 1, 8, 0)))
    db.commit()
    db.close()

    assert len(await ledger.list_recent()) == 3
    assert len(await ledger.list_today()) == 2
    mine = await ledger.list_for_user(user_id)
    assert len(mine) == 2
    assert mine[0].timestamp > mine[1].timestamp
