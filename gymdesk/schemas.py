from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from gymdesk.models import CheckinStatus, MembershipStatus, PaymentMethod, PaymentStatus, Role

# cuid (Prisma era ids) or uuid
USER_ID_PATTERN = r"^([a-z0-9]{25,}|[0-9a-fA-F-]{36})$"


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserOut(ORMModel):
    id: str
    email: str
    name: Optional[str] = None
    role: Role
    is_active: bool


class UserBrief(ORMModel):
    id: str
    email: str
    name: Optional[str] = None


class PlanOut(ORMModel):
    id: str
    name: str
    price: Decimal
    duration_days: int
    currency: str
    is_active: bool


class MembershipOut(ORMModel):
    id: str
    user_id: str
    plan_id: Optional[str] = None
    plan_name: Optional[str] = None
    status: MembershipStatus
    start_date: datetime
    end_date: datetime
    price_snapshot: Optional[Decimal] = None
    currency: str


class MembershipBrief(ORMModel):
    id: str
    status: MembershipStatus
    end_date: datetime
    plan_name: Optional[str] = None


class CheckinOut(ORMModel):
    id: str
    user_id: str
    membership_id: Optional[str] = None
    status: CheckinStatus
    timestamp: datetime
    notes: Optional[str] = None
    user: Optional[UserBrief] = None
    membership: Optional[MembershipBrief] = None


class PaymentOut(ORMModel):
    id: str
    user_id: str
    membership_id: Optional[str] = None
    amount: Decimal
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    paid_at: Optional[datetime] = None


class MetricsSnapshot(BaseModel):
    timestamp: datetime
    checkins_today: int
    active_memberships: int
    expired_memberships: int
    expiring_soon: int


class CheckinCreate(BaseModel):
    user_id: str = Field(pattern=USER_ID_PATTERN)
    notes: Optional[str] = Field(default=None, max_length=500)


class MembershipCreate(BaseModel):
    user_id: str = Field(pattern=USER_ID_PATTERN)
    plan_id: str
    start_date: Optional[date] = None


class MembershipStatusUpdate(BaseModel):
    status: MembershipStatus
