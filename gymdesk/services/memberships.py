import logging
from datetime import date, datetime, timedelta
from typing import Optional
from gymdesk.errors import NotFound, ValidationError
from gymdesk.models import MembershipStatus
from gymdesk.schemas import MembershipOut
from gymdesk.utils import utcnow

logger = logging.getLogger("gymdesk.memberships")

class MembershipService:
    def __init__(self, gateway, clock=utcnow):
        self._gateway = gateway
        self._clock = clock

    async def _get_or_error(self, membership_id: str) -> MembershipOut:
        membership = await self._gateway.find_membership(membership_id)
        if membership is None:
            raise NotFound("Membership not found")
        return membership

    async def purchase(self, user_id: str, plan_id: str, start_date: Optional[date] = None) -> MembershipOut:
        """Create an ACTIVE membership, copying the plan price as a snapshot."""
        user = await self._gateway.find_user(user_id)
        if user is None:
            raise NotFound("User not found")
        plan = await self._gateway.find_plan(plan_id)
        if plan is None:
            raise NotFound("Membership plan not found")
        if not plan.is_active:
            raise ValidationError("Membership plan is not available")

        start = datetime.combine(start_date, datetime.min.time()) if start_date else self._clock()
        membership = await self._gateway.create_membership(
            user_id=user.id,
            plan_id=plan.id,
            status=MembershipStatus.ACTIVE,
            start_date=start,
            end_date=start + timedelta(days=plan.duration_days),
            price_snapshot=plan.price,
            currency=plan.currency,
        )
        logger.info(f"Membership created: {membership.id} ({plan.name})", extra={"user_id": user.id})
        return membership

    async def renew(self, membership_id: str, extra_days: int = 30) -> MembershipOut:
        if extra_days < 1:
            raise ValidationError("Renewal must add at least one day")
        membership = await self._get_or_error(membership_id)
        renewed = await self._gateway.update_membership(
            membership.id,
            end_date=membership.end_date + timedelta(days=extra_days),
            status=MembershipStatus.ACTIVE,
        )
        logger.info(f"Membership renewed {membership.id} (+{extra_days} days)", extra={"user_id": membership.user_id})
        return renewed

    async def change_status(self, membership_id: str, status: MembershipStatus) -> MembershipOut:
        if status == MembershipStatus.EXPIRED:
            raise ValidationError("Memberships expire through the expiration sweep")
        membership = await self._get_or_error(membership_id)
        updated = await self._gateway.update_membership(membership.id, status=status)
        logger.info(
            f"Membership {membership.id} status {membership.status.value} -> {status.value}",
            extra={"user_id": membership.user_id},
        )
        return updated

    async def expire_overdue(self) -> int:
        updated = await self._gateway.expire_memberships_before(self._clock())
        if updated:
            logger.warning(f"{updated} memberships marked as expired")
        return updated

    async def list_for_user(self, user_id: str):
        return await self._gateway.list_memberships_for_user(user_id)
