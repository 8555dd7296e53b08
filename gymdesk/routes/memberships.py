from typing import List
from fastapi import APIRouter, Depends, Query, status
from gymdesk.dependencies import get_membership_service, require_roles
from gymdesk.models import Role
from gymdesk.schemas import MembershipCreate, MembershipOut, MembershipStatusUpdate
from gymdesk.services.memberships import MembershipService

router = APIRouter(prefix="/memberships", tags=["memberships"])

admin_only = require_roles(Role.ADMIN)

@router.post("", response_model=MembershipOut, status_code=status.HTTP_201_CREATED)
async def purchase(body: MembershipCreate, service: MembershipService = Depends(get_membership_service), admin=Depends(admin_only)):
    return await service.purchase(body.user_id, body.plan_id, body.start_date)

@router.get("/user/{user_id}", response_model=List[MembershipOut])
async def list_for_user(
    user_id: str,
    service: MembershipService = Depends(get_membership_service),
    staff=Depends(require_roles(Role.ADMIN, Role.STAFF)),
):
    return await service.list_for_user(user_id)

@router.post("/check-expired")
async def check_expired(service: MembershipService = Depends(get_membership_service), admin=Depends(admin_only)):
    """Run the expiration sweep now instead of waiting for the scheduler."""
    return {"updated": await service.expire_overdue()}

@router.post("/{membership_id}/renew", response_model=MembershipOut)
async def renew(
    membership_id: str,
    days: int = Query(30, ge=1, le=3660),
    service: MembershipService = Depends(get_membership_service),
    admin=Depends(admin_only),
):
    return await service.renew(membership_id, days)

@router.patch("/{membership_id}/status", response_model=MembershipOut)
async def change_status(
    membership_id: str,
    body: MembershipStatusUpdate,
    service: MembershipService = Depends(get_membership_service),
    admin=Depends(admin_only),
):
    return await service.change_status(membership_id, body.status)
