from __future__ import annotations

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from gymdesk.config import (
    DASHBOARD_FALLBACK_INTERVAL_SECONDS,
    DASHBOARD_INITIAL_REFRESH_DELAY_SECONDS,
    DASHBOARD_REFRESH_INTERVAL_SECONDS,
    MEMBERSHIP_SWEEP_INTERVAL_SECONDS,
)
from gymdesk.utils import utcnow

logger = logging.getLogger("gymdesk.scheduler")

IDLE = "idle"
RUNNING = "running"


class DashboardScheduler:
    """
    Periodic dashboard refresh plus the membership expiration sweep.

    Every tick refreshes and broadcasts while someone is watching. With no
    subscribers a refresh only runs once the fallback interval has passed
    since the last attempt. A failed refresh is logged and the next tick
    runs as usual.
    """

    def __init__(
        self,
        metrics_cache,
        broadcaster,
        membership_service=None,
        interval_seconds: int = DASHBOARD_REFRESH_INTERVAL_SECONDS,
        fallback_interval_seconds: int = DASHBOARD_FALLBACK_INTERVAL_SECONDS,
        initial_delay_seconds: int = DASHBOARD_INITIAL_REFRESH_DELAY_SECONDS,
        sweep_interval_seconds: int = MEMBERSHIP_SWEEP_INTERVAL_SECONDS,
        clock=utcnow,
    ) -> None:
        self.metrics_cache = metrics_cache
        self.broadcaster = broadcaster
        self.membership_service = membership_service
        self.interval_seconds = interval_seconds
        self.fallback_interval = timedelta(seconds=fallback_interval_seconds)
        self.initial_delay_seconds = initial_delay_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self._clock = clock
        self.state = IDLE
        self.last_refresh_at: datetime | None = None
        self.scheduler: AsyncIOScheduler | None = None

    async def start(self) -> None:
        self.scheduler = AsyncIOScheduler()

        self.scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval_seconds),
            id="dashboard_refresh",
            name="Dashboard metrics refresh",
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.initial_refresh,
            DateTrigger(run_date=datetime.now() + timedelta(seconds=self.initial_delay_seconds)),
            id="dashboard_initial_refresh",
            name="Initial dashboard refresh",
        )
        if self.membership_service is not None:
            self.scheduler.add_job(
                self.expire_memberships,
                IntervalTrigger(seconds=self.sweep_interval_seconds),
                id="membership_expiration",
                name="Membership expiration sweep",
                max_instances=1,
                coalesce=True,
            )

        self.scheduler.start()
        logger.info("Dashboard scheduler started")

    async def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown(wait=False)
            logger.info("Dashboard scheduler stopped")

    async def tick(self) -> bool:
        """Run one scheduled refresh if the policy allows it. Returns True when a refresh was attempted."""
        if self.state == RUNNING:
            logger.debug("Previous dashboard refresh still running, skipping tick")
            return False

        subscribers = self.broadcaster.subscriber_count()
        now = self._clock()
        if subscribers == 0:
            if self.last_refresh_at is not None and now - self.last_refresh_at < self.fallback_interval:
                elapsed = int((now - self.last_refresh_at).total_seconds())
                logger.debug(f"No realtime clients connected (last refresh {elapsed}s ago)")
                return False
            logger.info("No realtime clients connected, running fallback refresh")
        else:
            logger.info(f"{subscribers} realtime client(s) connected, refreshing dashboard")

        return await self._refresh(now)

    async def initial_refresh(self) -> bool:
        logger.info("Refreshing dashboard metrics after startup")
        return await self._refresh(self._clock())

    async def _refresh(self, now: datetime) -> bool:
        if self.state == RUNNING:
            logger.debug("Dashboard refresh already running, skipping")
            return False
        self.state = RUNNING
        self.last_refresh_at = now
        try:
            await self.metrics_cache.refresh_and_broadcast()
        except Exception as exc:
            logger.exception("Error during scheduled dashboard refresh: %s", exc)
        finally:
            self.state = IDLE
        return True

    async def expire_memberships(self) -> None:
        try:
            updated = await self.membership_service.expire_overdue()
            logger.info(f"Membership expiration sweep done ({updated} expired)")
        except Exception as exc:
            logger.exception("Error during membership expiration sweep: %s", exc)
