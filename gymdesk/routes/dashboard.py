from fastapi import APIRouter, Depends, Query
from gymdesk.dependencies import (
    get_dashboard_reports, get_finance_reports, get_metrics_cache, require_roles
)
from gymdesk.models import Role
from gymdesk.schemas import MetricsSnapshot
from gymdesk.services.dashboard import DashboardReports, MetricsCache
from gymdesk.services.finance import FinanceReports
from gymdesk.utils import parse_date_range, utcnow

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

staff_only = require_roles(Role.ADMIN, Role.STAFF)
admin_only = require_roles(Role.ADMIN)

# --- Status / realtime ---
@router.get("/ping")
def ping(user=Depends(staff_only)):
    return {"ok": True, "message": "Dashboard module active"}

@router.get("/refresh", response_model=MetricsSnapshot)
async def refresh(cache: MetricsCache = Depends(get_metrics_cache), user=Depends(staff_only)):
    """Force a recompute and push it to realtime clients."""
    return await cache.refresh_and_broadcast()

@router.get("/health")
def health(user=Depends(staff_only)):
    return {"ok": True, "module": "dashboard", "timestamp": utcnow()}

# --- Operational metrics ---
@router.get("/metrics", response_model=MetricsSnapshot)
async def metrics(cache: MetricsCache = Depends(get_metrics_cache), user=Depends(staff_only)):
    return await cache.get_metrics()

# --- Reports ---
@router.get("/checkins/daily")
async def daily_trend(reports: DashboardReports = Depends(get_dashboard_reports), user=Depends(staff_only)):
    return await reports.daily_checkins_trend()

@router.get("/checkins/peak-hour")
async def peak_hour(reports: DashboardReports = Depends(get_dashboard_reports), user=Depends(staff_only)):
    return await reports.peak_hours()

@router.get("/activity/history")
async def activity_history(
    from_: str = Query(None, alias="from", description="Start date (YYYY-MM-DD)"),
    to: str = Query(None, description="End date (YYYY-MM-DD)"),
    reports: DashboardReports = Depends(get_dashboard_reports),
    admin=Depends(admin_only),
):
    from_date, to_date = parse_date_range(from_, to)
    return await reports.activity_history(from_date, to_date)

@router.get("/performance/global")
async def global_performance(reports: DashboardReports = Depends(get_dashboard_reports), admin=Depends(admin_only)):
    return await reports.global_performance()

# --- Finance (admin) ---
@router.get("/finance")
async def finance_dashboard(finance: FinanceReports = Depends(get_finance_reports), admin=Depends(admin_only)):
    return await finance.full_dashboard()

@router.get("/finance/summary")
async def finance_summary(finance: FinanceReports = Depends(get_finance_reports), admin=Depends(admin_only)):
    return await finance.summary()

@router.get("/finance/methods")
async def finance_methods(finance: FinanceReports = Depends(get_finance_reports), admin=Depends(admin_only)):
    return await finance.revenue_by_method()

@router.get("/finance/plans")
async def finance_plans(finance: FinanceReports = Depends(get_finance_reports), admin=Depends(admin_only)):
    return await finance.performance_by_plan()

@router.get("/finance/trend")
async def finance_trend(
    days: int = Query(14, ge=1, le=366),
    finance: FinanceReports = Depends(get_finance_reports),
    admin=Depends(admin_only),
):
    return await finance.revenue_trend(days)
