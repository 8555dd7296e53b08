import asyncio
import logging
from datetime import timedelta
from gymdesk.config import DEFAULT_CURRENCY
from gymdesk.models import PaymentStatus
from gymdesk.utils import days_ago, gym_timezone, to_local, utcnow

logger = logging.getLogger("gymdesk.finance")

NO_PLAN = "No plan"

class FinanceReports:
    """Revenue aggregates over PAID payments. Payments are never modified here."""

    def __init__(self, gateway, clock=utcnow, currency=DEFAULT_CURRENCY, tz=None):
        self._gateway = gateway
        self._clock = clock
        self._currency = currency
        self._tz = tz or gym_timezone()

    async def summary(self):
        now = self._clock()
        total, daily, weekly = await asyncio.gather(
            self._gateway.sum_payments(PaymentStatus.PAID),
            self._gateway.sum_payments(PaymentStatus.PAID, days_ago(now, 0, self._tz)),
            self._gateway.sum_payments(PaymentStatus.PAID, now - timedelta(days=7)),
        )
        result = {
            "total_revenue": float(total),
            "daily_revenue": float(daily),
            "weekly_revenue": float(weekly),
            "currency": self._currency,
        }
        logger.debug(f"Finance summary: {result}")
        return result

    async def revenue_trend(self, days: int = 14):
        """Daily PAID revenue by local calendar day, oldest first, one point per day ending today."""
        start = days_ago(self._clock(), days - 1, self._tz)
        payments = await self._gateway.list_payments(PaymentStatus.PAID, start)
        totals = {}
        for payment in payments:
            if payment.paid_at is None:
                continue
            day = to_local(payment.paid_at, self._tz).date()
            totals[day] = totals.get(day, 0) + payment.amount
        trend = []
        first_day = to_local(start, self._tz).date()
        for offset in range(days):
            day = first_day + timedelta(days=offset)
            trend.append({"date": day.isoformat(), "total": float(totals.get(day, 0))})
        return trend

    async def revenue_by_method(self):
        rows = await self._gateway.group_payments_by_method(PaymentStatus.PAID)
        return [{"method": row["method"], "total": float(row["total"])} for row in rows]

    async def performance_by_plan(self):
        rows = await self._gateway.sum_payments_by_plan(PaymentStatus.PAID)
        merged = {}
        for row in rows:
            plan = row["plan"] or NO_PLAN
            entry = merged.setdefault(plan, {"plan": plan, "total": 0.0, "payments": 0})
            entry["total"] += float(row["total"])
            entry["payments"] += row["payments"]
        return sorted(merged.values(), key=lambda r: r["total"], reverse=True)

    async def full_dashboard(self):
        summary, trend, by_method, by_plan = await asyncio.gather(
            self.summary(),
            self.revenue_trend(14),
            self.revenue_by_method(),
            self.performance_by_plan(),
        )
        logger.info("Finance dashboard generated")
        return {"summary": summary, "trend": trend, "by_method": by_method, "by_plan": by_plan}
