from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
from gymdesk.db import SessionLocal
from gymdesk.models import Role
from gymdesk.realtime import RealtimeBroadcaster
from gymdesk.repository import PersistenceGateway
from gymdesk.schemas import UserOut
from gymdesk.scheduler import DashboardScheduler
from gymdesk.security import decode_token
from gymdesk.services.admission import MembershipAdmissionOracle
from gymdesk.services.checkins import CheckinLedger
from gymdesk.services.dashboard import DashboardReports, MetricsCache
from gymdesk.services.finance import FinanceReports
from gymdesk.services.memberships import MembershipService

# Process-wide components, wired once.
gateway = PersistenceGateway(SessionLocal)
broadcaster = RealtimeBroadcaster()
admission_oracle = MembershipAdmissionOracle(gateway)
checkin_ledger = CheckinLedger(gateway, admission_oracle, broadcaster)
metrics_cache = MetricsCache(gateway, broadcaster)
dashboard_reports = DashboardReports(gateway)
finance_reports = FinanceReports(gateway)
membership_service = MembershipService(gateway)
dashboard_scheduler = DashboardScheduler(metrics_cache, broadcaster, membership_service)

bearer_scheme = HTTPBearer(auto_error=False)


def get_gateway() -> PersistenceGateway:
    return gateway

def get_broadcaster() -> RealtimeBroadcaster:
    return broadcaster

def get_checkin_ledger() -> CheckinLedger:
    return checkin_ledger

def get_metrics_cache() -> MetricsCache:
    return metrics_cache

def get_dashboard_reports() -> DashboardReports:
    return dashboard_reports

def get_finance_reports() -> FinanceReports:
    return finance_reports

def get_membership_service() -> MembershipService:
    return membership_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    gateway: PersistenceGateway = Depends(get_gateway),
) -> UserOut:
    """Resolve the bearer token to an active user."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await gateway.find_user(payload["sub"])
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated")
    return user


def require_roles(*roles: Role):
    """Require one of the given roles."""
    def _require_roles(current_user: UserOut = Depends(get_current_user)) -> UserOut:
        if current_user.role not in roles:
            allowed = ", ".join(r.value for r in roles)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"One of roles [{allowed}] required"
            )
        return current_user
    return _require_roles
