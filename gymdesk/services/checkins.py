import logging
from typing import Optional
from gymdesk.errors import MembershipInactive, NotFound
from gymdesk.metrics import increment_checkin
from gymdesk.models import CheckinStatus
from gymdesk.realtime import CheckinEvent, DashboardCheckinEvent
from gymdesk.schemas import CheckinOut
from gymdesk.utils import days_ago, gym_timezone, utcnow

logger = logging.getLogger("gymdesk.checkins")

DENIED_NOTE = "No active or unexpired membership"

class CheckinLedger:
    """Append-only record of admission decisions.

    Both outcomes are persisted and broadcast. A denial is written and
    announced before MembershipInactive is raised, so dashboards see it even
    though the caller gets an error. Repeated attempts are not deduplicated.
    """

    def __init__(self, gateway, oracle, broadcaster, clock=utcnow, tz=None):
        self._gateway = gateway
        self._oracle = oracle
        self._broadcaster = broadcaster
        self._clock = clock
        self._tz = tz or gym_timezone()

    async def record_admission(self, user_id: str, notes: Optional[str] = None) -> CheckinOut:
        user = await self._gateway.find_user(user_id)
        if user is None:
            raise NotFound("User not found")

        admission = await self._oracle.is_admissible(user_id)
        if not admission.admissible:
            denied = await self._gateway.create_checkin(
                user_id=user.id, membership_id=None, status=CheckinStatus.DENIED, notes=DENIED_NOTE
            )
            increment_checkin(CheckinStatus.DENIED.value)
            await self._announce(denied)
            logger.warning(
                f"Check-in denied for {user.email}: no active membership",
                extra={"user_id": user.id, "checkin_status": CheckinStatus.DENIED.value},
            )
            raise MembershipInactive("User has no active or unexpired membership", checkin=denied)

        checkin = await self._gateway.create_checkin(
            user_id=user.id,
            membership_id=admission.membership.id,
            status=CheckinStatus.ALLOWED,
            notes=notes,
        )
        increment_checkin(CheckinStatus.ALLOWED.value)
        logger.info(
            f"Check-in allowed for {user.email} with membership {admission.membership.id}",
            extra={"user_id": user.id, "checkin_status": CheckinStatus.ALLOWED.value},
        )
        await self._announce(checkin)
        return checkin

    async def _announce(self, checkin: CheckinOut):
        await self._broadcaster.emit(CheckinEvent(checkin))
        await self._broadcaster.emit(DashboardCheckinEvent(checkin))

    async def list_recent(self, limit: int = 100):
        return await self._gateway.list_recent_checkins(limit)

    async def list_today(self):
        now = self._clock()
        return await self._gateway.find_checkins_in_range(days_ago(now, 0, self._tz), days_ago(now, -1, self._tz))

    async def list_for_user(self, user_id: str, limit: int = 50):
        return await self._gateway.list_checkins_for_user(user_id, limit)
