from typing import List
from fastapi import APIRouter, Depends, status
from gymdesk.dependencies import get_checkin_ledger, require_roles
from gymdesk.models import Role
from gymdesk.schemas import CheckinCreate, CheckinOut
from gymdesk.services.checkins import CheckinLedger

router = APIRouter(prefix="/checkin", tags=["checkin"])

front_desk = require_roles(Role.ADMIN, Role.STAFF)

@router.post("", response_model=CheckinOut, status_code=status.HTTP_201_CREATED)
async def register_checkin(
    body: CheckinCreate,
    ledger: CheckinLedger = Depends(get_checkin_ledger),
    staff=Depends(front_desk),
):
    """Validate membership and record the entry. Denied attempts are recorded too and answered with 403."""
    return await ledger.record_admission(body.user_id, body.notes)

@router.get("", response_model=List[CheckinOut])
async def list_checkins(ledger: CheckinLedger = Depends(get_checkin_ledger), staff=Depends(front_desk)):
    return await ledger.list_recent()

@router.get("/today", response_model=List[CheckinOut])
async def list_today(ledger: CheckinLedger = Depends(get_checkin_ledger), staff=Depends(front_desk)):
    return await ledger.list_today()

@router.get("/user/{user_id}", response_model=List[CheckinOut])
async def list_for_user(user_id: str, ledger: CheckinLedger = Depends(get_checkin_ledger), staff=Depends(front_desk)):
    return await ledger.list_for_user(user_id)
