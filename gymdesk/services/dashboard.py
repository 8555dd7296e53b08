import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional
from gymdesk.config import EXPIRING_SOON_DAYS, METRICS_CACHE_TTL_SECONDS, DEFAULT_CURRENCY
from gymdesk.errors import DependencyUnavailable
from gymdesk.metrics import increment_dashboard_refresh
from gymdesk.models import MembershipStatus, PaymentStatus
from gymdesk.realtime import DashboardSnapshotEvent
from gymdesk.schemas import MetricsSnapshot
from gymdesk.utils import (
    days_ago, gym_timezone, local_date_bounds, to_local, utcnow, variation_pct
)

logger = logging.getLogger("gymdesk.dashboard")

@dataclass(frozen=True)
class _CacheEntry:
    snapshot: MetricsSnapshot
    expires_at: datetime

class MetricsCache:
    """Single dashboard snapshot with a freshness window.

    The entry is only ever replaced by a fully computed snapshot, and never
    by one that started before the snapshot already stored. A failed
    recompute leaves whatever was stored before untouched. Concurrent
    non-forced misses share one in-flight recompute.
    """

    def __init__(self, gateway, broadcaster, ttl_seconds=METRICS_CACHE_TTL_SECONDS,
                 expiring_soon_days=EXPIRING_SOON_DAYS, clock=utcnow, tz=None):
        self._gateway = gateway
        self._broadcaster = broadcaster
        self._ttl = timedelta(seconds=ttl_seconds)
        self._expiring_soon = timedelta(days=expiring_soon_days)
        self._clock = clock
        self._tz = tz or gym_timezone()
        self._entry: Optional[_CacheEntry] = None
        self._inflight: Optional[asyncio.Task] = None

    def peek(self) -> Optional[MetricsSnapshot]:
        """Stored snapshot regardless of freshness, without touching the database."""
        return self._entry.snapshot if self._entry else None

    def _is_fresh(self) -> bool:
        return self._entry is not None and self._clock() < self._entry.expires_at

    async def get_metrics(self, force_refresh: bool = False) -> MetricsSnapshot:
        if force_refresh:
            return await self._recompute(trigger="forced")

        if self._is_fresh():
            return self._entry.snapshot

        try:
            return await self._shared_recompute()
        except DependencyUnavailable:
            if self._entry is None:
                raise
            logger.warning(
                "Dashboard recompute failed, serving stale snapshot from "
                f"{self._entry.snapshot.timestamp.isoformat()}"
            )
            return self._entry.snapshot

    async def refresh_and_broadcast(self) -> MetricsSnapshot:
        snapshot = await self.get_metrics(force_refresh=True)
        await self._broadcaster.emit(DashboardSnapshotEvent(snapshot))
        logger.info("Dashboard snapshot broadcast", extra={"event": DashboardSnapshotEvent.name})
        return snapshot

    async def _shared_recompute(self) -> MetricsSnapshot:
        if self._inflight is None:
            self._inflight = asyncio.ensure_future(self._recompute(trigger="miss"))
            self._inflight.add_done_callback(self._clear_inflight)
        return await asyncio.shield(self._inflight)

    def _clear_inflight(self, task):
        if self._inflight is task:
            self._inflight = None

    async def _recompute(self, trigger: str) -> MetricsSnapshot:
        now = self._clock()
        try:
            checkins_today, active, expired, expiring_soon = await asyncio.gather(
                self._gateway.count_checkins_since(days_ago(now, 0, self._tz)),
                self._gateway.count_memberships(MembershipStatus.ACTIVE),
                self._gateway.count_memberships(MembershipStatus.EXPIRED),
                self._gateway.count_memberships_expiring_by(now + self._expiring_soon),
            )
        except Exception:
            increment_dashboard_refresh(trigger, "error")
            raise
        snapshot = MetricsSnapshot(
            timestamp=now,
            checkins_today=checkins_today,
            active_memberships=active,
            expired_memberships=expired,
            expiring_soon=expiring_soon,
        )
        if self._entry is not None and now < self._entry.snapshot.timestamp:
            # A newer snapshot landed while this one was computing
            increment_dashboard_refresh(trigger, "superseded")
            logger.debug(f"Dashboard metrics recompute ({trigger}) superseded, keeping newer snapshot")
            return snapshot
        self._entry = _CacheEntry(snapshot=snapshot, expires_at=now + self._ttl)
        increment_dashboard_refresh(trigger, "ok")
        logger.debug(f"Dashboard metrics recomputed ({trigger})")
        return snapshot


class DashboardReports:
    """On-demand activity reports. Days and hours follow the gym's local calendar."""

    def __init__(self, gateway, clock=utcnow, currency=DEFAULT_CURRENCY, tz=None):
        self._gateway = gateway
        self._clock = clock
        self._currency = currency
        self._tz = tz or gym_timezone()

    async def daily_checkins_trend(self, days: int = 7):
        now = self._clock()
        start = days_ago(now, days - 1, self._tz)
        end = days_ago(now, -1, self._tz)
        checkins = await self._gateway.find_checkins_in_range(start, end)
        counts = {}
        for checkin in checkins:
            day = to_local(checkin.timestamp, self._tz).date()
            counts[day] = counts.get(day, 0) + 1
        first_day = to_local(start, self._tz).date()
        trend = []
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            trend.append({"date": day.isoformat(), "count": counts.get(day, 0)})
        return {"trend": trend}

    async def peak_hours(self):
        now = self._clock()
        checkins = await self._gateway.find_checkins_in_range(
            days_ago(now, 0, self._tz), days_ago(now, -1, self._tz)
        )
        distribution = hourly_distribution(to_local(c.timestamp, self._tz) for c in checkins)
        return {"peak_hour": peak_bucket(distribution), "distribution": distribution}

    async def activity_history(self, from_date: date, to_date: date):
        start, end = local_date_bounds(from_date, to_date, self._tz)
        records = await self._gateway.find_checkins_in_range(start, end)
        return {
            "range": {"from": from_date.isoformat(), "to": to_date.isoformat()},
            "total": len(records),
            "records": records,
        }

    async def global_performance(self):
        now = self._clock()
        week_start = days_ago(now, 6, self._tz)
        prev_week_start = days_ago(now, 13, self._tz)
        checks_curr, checks_prev, revenue_curr, revenue_prev = await asyncio.gather(
            self._gateway.count_checkins_since(week_start),
            self._gateway.count_checkins_since(prev_week_start, week_start),
            self._gateway.sum_payments(PaymentStatus.PAID, week_start),
            self._gateway.sum_payments(PaymentStatus.PAID, prev_week_start, week_start),
        )
        return {
            "period": {
                "current": {"from": week_start, "to": now},
                "previous": {"from": prev_week_start, "to": week_start},
            },
            "checkins": {
                "current": checks_curr,
                "previous": checks_prev,
                "variation_pct": variation_pct(checks_prev, checks_curr),
            },
            "revenue": {
                "current": float(revenue_curr),
                "previous": float(revenue_prev),
                "variation_pct": variation_pct(revenue_prev, revenue_curr),
                "currency": self._currency,
            },
        }


def hourly_distribution(timestamps):
    counts = [{"hour": hour, "count": 0} for hour in range(24)]
    for ts in timestamps:
        counts[ts.hour]["count"] += 1
    return counts

def peak_bucket(distribution):
    """Bucket with the highest count; ties go to the earliest hour."""
    peak = distribution[0]
    for bucket in distribution[1:]:
        if bucket["count"] > peak["count"]:
            peak = bucket
    return peak
