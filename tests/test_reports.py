import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from gymdesk.errors import ValidationError
from gymdesk.models import Base, User, Checkin, CheckinStatus, Payment, PaymentMethod, PaymentStatus, Role
from gymdesk.repository import PersistenceGateway
from gymdesk.services.dashboard import DashboardReports, hourly_distribution, peak_bucket
from gymdesk.utils import parse_date_range, variation_pct

NOW = datetime(2026, 5, 10, 21, 15)

@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path}/reports.db", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()

@pytest.fixture
def reports(session_factory):
    return DashboardReports(PersistenceGateway(session_factory), clock=lambda: NOW, currency="MXN", tz=ZoneInfo("UTC"))

@pytest.fixture
def user_id(session_factory):
    db = session_factory()
    user = User(email="reports@gym.test", role=Role.CLIENT)
    db.add(user)
    db.commit()
    uid = user.id
    db.close()
    return uid

def add_checkins(session_factory, user_id, *timestamps, status=CheckinStatus.ALLOWED):
    db = session_factory()
    for ts in timestamps:
        db.add(Checkin(user_id=user_id, status=status, timestamp=ts))
    db.commit()
    db.close()

def add_payment(session_factory, user_id, amount, paid_at, status=PaymentStatus.PAID):
    db = session_factory()
    db.add(Payment(user_id=user_id, amount=amount, method=PaymentMethod.CASH, status=status, paid_at=paid_at))
    db.commit()
    db.close()


def test_variation_pct():
    assert variation_pct(0, 0) == 0.0
    assert variation_pct(0, 5) == 100.0
    assert variation_pct(50, 75) == 50.0
    assert variation_pct(4, 3) == -25.0
    assert variation_pct(3, 4) == 33.33
    assert variation_pct(Decimal("200"), Decimal("100")) == -50.0

def test_hourly_distribution_and_peak():
    stamps = [datetime(2026, 5, 10, h, 5) for h in (9, 9, 14, 14, 14, 20)]
    distribution = hourly_distribution(stamps)
    assert len(distribution) == 24
    assert sum(b["count"] for b in distribution) == 6
    assert peak_bucket(distribution) == {"hour": 14, "count": 3}

def test_peak_ties_go_to_earliest_hour():
    distribution = hourly_distribution([datetime(2026, 5, 10, 18), datetime(2026, 5, 10, 7)])
    assert peak_bucket(distribution)["hour"] == 7

def test_peak_of_empty_day_is_midnight_with_zero():
    assert peak_bucket(hourly_distribution([])) == {"hour": 0, "count": 0}

def test_parse_date_range():
    assert parse_date_range("2026-05-01", "2026-05-03") == (date(2026, 5, 1), date(2026, 5, 3))
    with pytest.raises(ValidationError):
        parse_date_range(None, "2026-05-03")
    with pytest.raises(ValidationError):
        parse_date_range("2026-5-1", "2026-05-03")
    with pytest.raises(ValidationError):
        parse_date_range("2026-02-30", "2026-05-03")


async def test_daily_trend_fills_missing_days(reports, session_factory, user_id):
    add_checkins(
        session_factory, user_id,
        datetime(2026, 5, 10, 8, 0),
        datetime(2026, 5, 10, 9, 0),
        datetime(2026, 5, 7, 12, 0),
        datetime(2026, 5, 4, 0, 0),
        datetime(2026, 5, 3, 23, 59),  # outside the window
    )
    trend = (await reports.daily_checkins_trend())["trend"]
    assert [p["date"] for p in trend] == [
        "2026-05-04", "2026-05-05", "2026-05-06", "2026-05-07", "2026-05-08", "2026-05-09", "2026-05-10"
    ]
    assert [p["count"] for p in trend] == [1, 0, 0, 1, 0, 0, 2]

async def test_peak_hours_only_counts_today(reports, session_factory, user_id):
    add_checkins(
        session_factory, user_id,
        *[datetime(2026, 5, 10, h, 30) for h in (9, 9, 14, 14, 14, 20)],
        datetime(2026, 5, 9, 14, 0),
    )
    result = await reports.peak_hours()
    assert result["peak_hour"] == {"hour": 14, "count": 3}
    assert sum(b["count"] for b in result["distribution"]) == 6

async def test_activity_history_includes_both_end_days(reports, session_factory, user_id):
    add_checkins(
        session_factory, user_id,
        datetime(2026, 5, 1, 0, 0),
        datetime(2026, 5, 3, 23, 59, 59),
        datetime(2026, 5, 4, 0, 0),
    )
    add_checkins(session_factory, user_id, datetime(2026, 5, 2, 10, 0), status=CheckinStatus.DENIED)
    result = await reports.activity_history(date(2026, 5, 1), date(2026, 5, 3))
    assert result["range"] == {"from": "2026-05-01", "to": "2026-05-03"}
    assert result["total"] == 3
    assert result["records"][0].timestamp == datetime(2026, 5, 3, 23, 59, 59)
    assert result["records"][0].user.email == "reports@gym.test"

async def test_activity_history_inverted_range_is_empty(reports, session_factory, user_id):
    add_checkins(session_factory, user_id, datetime(2026, 5, 2, 10, 0))
    result = await reports.activity_history(date(2026, 5, 3), date(2026, 5, 1))
    assert result["total"] == 0

async def test_global_performance_compares_weeks(reports, session_factory, user_id):
    # current window starts 2026-05-04 00:00, previous one 2026-04-27 00:00
    add_checkins(
        session_factory, user_id,
        datetime(2026, 5, 4, 0, 0), datetime(2026, 5, 8, 10, 0), datetime(2026, 5, 10, 7, 0),
        datetime(2026, 4, 27, 0, 0), datetime(2026, 5, 3, 23, 0),
        datetime(2026, 4, 26, 12, 0),
    )
    add_payment(session_factory, user_id, Decimal("650.00"), datetime(2026, 5, 5, 10, 0))
    add_payment(session_factory, user_id, Decimal("90.00"), datetime(2026, 5, 9, 10, 0))
    add_payment(session_factory, user_id, Decimal("500.00"), datetime(2026, 4, 30, 10, 0))
    add_payment(session_factory, user_id, Decimal("999.00"), datetime(2026, 5, 6, 10, 0), status=PaymentStatus.PENDING)

    result = await reports.global_performance()
    assert result["period"]["current"] == {"from": datetime(2026, 5, 4), "to": NOW}
    assert result["period"]["previous"] == {"from": datetime(2026, 4, 27), "to": datetime(2026, 5, 4)}
    assert result["checkins"] == {"current": 3, "previous": 2, "variation_pct": 50.0}
    assert result["revenue"]["current"] == 740.0
    assert result["revenue"]["previous"] == 500.0
    assert result["revenue"]["variation_pct"] == 48.0
    assert result["revenue"]["currency"] == "MXN"

async def test_global_performance_with_no_activity(reports):
    result = await reports.global_performance()
    assert result["checkins"]["variation_pct"] == 0.0
    assert result["revenue"]["variation_pct"] == 0.0


# 2026-05-10 20:00 in Mexico City (UTC-6)
NOW_MX = datetime(2026, 5, 11, 2, 0)
MEXICO_CITY = ZoneInfo("America/Mexico_City")

@pytest.fixture
def local_reports(session_factory):
    return DashboardReports(PersistenceGateway(session_factory), clock=lambda: NOW_MX, tz=MEXICO_CITY)

@pytest.fixture
def local_checkins(session_factory, user_id):
    add_checkins(
        session_factory, user_id,
        datetime(2026, 5, 10, 13, 0),   # 07:00 local
        datetime(2026, 5, 10, 13, 40),  # 07:40 local
        datetime(2026, 5, 10, 15, 0),   # 09:00 local
        datetime(2026, 5, 11, 1, 0),    # 19:00 local, still May 10
        datetime(2026, 5, 10, 5, 0),    # 23:00 local on May 9
    )

async def test_peak_hours_use_gym_wall_clock(local_reports, local_checkins):
    result = await local_reports.peak_hours()
    assert result["peak_hour"] == {"hour": 7, "count": 2}
    assert sum(b["count"] for b in result["distribution"]) == 4
    assert result["distribution"][13]["count"] == 0

async def test_daily_trend_uses_local_days(local_reports, local_checkins):
    trend = (await local_reports.daily_checkins_trend())["trend"]
    assert trend[0]["date"] == "2026-05-04"
    assert trend[-2:] == [{"date": "2026-05-09", "count": 1}, {"date": "2026-05-10", "count": 4}]

async def test_activity_history_uses_local_days(local_reports, local_checkins):
    result = await local_reports.activity_history(date(2026, 5, 9), date(2026, 5, 9))
    assert result["total"] == 1
    assert result["records"][0].timestamp == datetime(2026, 5, 10, 5, 0)
