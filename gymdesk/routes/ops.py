from fastapi import APIRouter, Depends
from gymdesk.dependencies import get_broadcaster, get_gateway
from gymdesk.errors import DependencyUnavailable
from gymdesk.metrics import metrics_endpoint
from gymdesk.realtime import RealtimeBroadcaster
from gymdesk.repository import PersistenceGateway
from gymdesk.utils import utcnow

router = APIRouter()

start_time = utcnow()

@router.get("/healthz")
def healthz():
    uptime = (utcnow() - start_time).total_seconds()
    return {"status": "ok", "uptime_seconds": uptime}

@router.get("/readyz")
async def readyz(
    gateway: PersistenceGateway = Depends(get_gateway),
    broadcaster: RealtimeBroadcaster = Depends(get_broadcaster),
):
    checks = {}
    try:
        checks["db"] = await gateway.ping()
    except DependencyUnavailable:
        checks["db"] = False
    checks["realtime_subscribers"] = broadcaster.subscriber_count()
    checks["ok"] = checks["db"] is True
    return checks

@router.get("/metrics")
def metrics():
    return metrics_endpoint()
