import logging
from dataclasses import dataclass
from typing import Optional
from gymdesk.schemas import MembershipOut
from gymdesk.utils import utcnow

logger = logging.getLogger("gymdesk.admission")

@dataclass(frozen=True)
class Admission:
    admissible: bool
    membership: Optional[MembershipOut] = None

class MembershipAdmissionOracle:
    """Decides whether a user may enter, from membership state alone.

    The stored ACTIVE status is not trusted on its own: the expiration sweep
    runs in batches, so an ACTIVE membership whose end date has already passed
    is still rejected here. Unknown users simply have no membership.
    """

    def __init__(self, gateway, clock=utcnow):
        self._gateway = gateway
        self._clock = clock

    async def is_admissible(self, user_id: str) -> Admission:
        membership = await self._gateway.find_active_membership(user_id)
        if membership is None:
            return Admission(admissible=False)
        now = self._clock()
        if membership.end_date > now:
            return Admission(admissible=True, membership=membership)
        logger.debug(
            f"Membership {membership.id} is ACTIVE but ended at {membership.end_date.isoformat()}",
            extra={"user_id": user_id},
        )
        return Admission(admissible=False)
