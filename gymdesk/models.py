import uuid
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SqlEnum, Text, Numeric, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship
from enum import Enum as PyEnum
from gymdesk.config import DEFAULT_CURRENCY
from gymdesk.utils import utcnow

Base = declarative_base()

def new_id() -> str:
    return str(uuid.uuid4())

class Role(str, PyEnum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    CLIENT = "CLIENT"

class MembershipStatus(str, PyEnum):
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    FROZEN = "FROZEN"
    CANCELLED = "CANCELLED"

class PaymentMethod(str, PyEnum):
    CASH = "CASH"
    CARD = "CARD"
    TRANSFER = "TRANSFER"
    STRIPE = "STRIPE"

class PaymentStatus(str, PyEnum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"

class CheckinStatus(str, PyEnum):
    ALLOWED = "ALLOWED"
    DENIED = "DENIED"

class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(320), unique=True, index=True, nullable=False)
    name = Column(String(200), nullable=True)
    password_hash = Column(String, nullable=True)
    role = Column(SqlEnum(Role), default=Role.CLIENT, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    memberships = relationship("Membership", back_populates="user")
    checkins = relationship("Checkin", back_populates="user")

class MembershipPlan(Base):
    __tablename__ = "membership_plans"
    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(120), unique=True, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    duration_days = Column(Integer, nullable=False)
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

class Membership(Base):
    __tablename__ = "memberships"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    plan_id = Column(String(36), ForeignKey("membership_plans.id"), nullable=True)
    status = Column(SqlEnum(MembershipStatus), default=MembershipStatus.ACTIVE, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    # Copied from the plan at purchase; later plan price edits do not touch it.
    price_snapshot = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
    user = relationship("User", back_populates="memberships")
    plan = relationship("MembershipPlan")
    __table_args__ = (
        Index("ix_memberships_status_end_date", "status", "end_date"),
    )

    @property
    def plan_name(self):
        return self.plan.name if self.plan else None

class Payment(Base):
    __tablename__ = "payments"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    membership_id = Column(String(36), ForeignKey("memberships.id"), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default=DEFAULT_CURRENCY, nullable=False)
    method = Column(SqlEnum(PaymentMethod), nullable=False)
    status = Column(SqlEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    paid_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=utcnow)
    membership = relationship("Membership")

class Checkin(Base):
    __tablename__ = "checkins"
    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    membership_id = Column(String(36), ForeignKey("memberships.id"), nullable=True)
    status = Column(SqlEnum(CheckinStatus), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)
    notes = Column(Text, nullable=True)
    user = relationship("User", back_populates="checkins")
    membership = relationship("Membership")
