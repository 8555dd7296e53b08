import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import func, text
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from starlette.concurrency import run_in_threadpool
from gymdesk.errors import DependencyUnavailable
from gymdesk.models import (
    User, MembershipPlan, Membership, MembershipStatus, Payment, PaymentStatus, Checkin, CheckinStatus
)
from gymdesk.schemas import CheckinOut, MembershipOut, PaymentOut, PlanOut, UserOut
from gymdesk.utils import normalize_email

logger = logging.getLogger("gymdesk.repository")

# --- Users / plans ---

def get_user(db: Session, user_id: str):
    return db.get(User, user_id)

def get_user_by_email(db: Session, email: str):
    email = normalize_email(email)
    return db.query(User).filter(User.email == email).first()

def create_user(db: Session, email: str, role, name=None, password_hash=None, is_active=True):
    user = User(email=normalize_email(email), role=role, name=name, password_hash=password_hash, is_active=is_active)
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    db.refresh(user)
    return user

def get_plan(db: Session, plan_id: str):
    return db.get(MembershipPlan, plan_id)

def upsert_plan(db: Session, name: str, price, duration_days: int, currency: str):
    plan = db.query(MembershipPlan).filter(MembershipPlan.name == name).first()
    if plan:
        plan.price = price
        plan.duration_days = duration_days
        plan.currency = currency
    else:
        plan = MembershipPlan(name=name, price=price, duration_days=duration_days, currency=currency)
        db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan

# --- Memberships ---

def find_active_membership(db: Session, user_id: str):
    """Most recently ending ACTIVE membership. Status only; the caller checks the date."""
    return (
        db.query(Membership)
        .options(selectinload(Membership.plan))
        .filter(Membership.user_id == user_id, Membership.status == MembershipStatus.ACTIVE)
        .order_by(Membership.end_date.desc())
        .first()
    )

def count_memberships(db: Session, status: MembershipStatus) -> int:
    return db.query(func.count(Membership.id)).filter(Membership.status == status).scalar()

def count_memberships_expiring_by(db: Session, deadline: datetime) -> int:
    return (
        db.query(func.count(Membership.id))
        .filter(Membership.status == MembershipStatus.ACTIVE, Membership.end_date <= deadline)
        .scalar()
    )

def get_membership(db: Session, membership_id: str):
    return db.query(Membership).options(selectinload(Membership.plan)).filter(Membership.id == membership_id).first()

def list_memberships_for_user(db: Session, user_id: str):
    return (
        db.query(Membership)
        .options(selectinload(Membership.plan))
        .filter(Membership.user_id == user_id)
        .order_by(Membership.created_at.desc())
        .all()
    )

def create_membership(db: Session, *, user_id, plan_id, status, start_date, end_date, price_snapshot, currency):
    membership = Membership(
        user_id=user_id,
        plan_id=plan_id,
        status=status,
        start_date=start_date,
        end_date=end_date,
        price_snapshot=price_snapshot,
        currency=currency,
    )
    db.add(membership)
    db.commit()
    return get_membership(db, membership.id)

def update_membership(db: Session, membership_id: str, **fields):
    membership = db.get(Membership, membership_id)
    if membership is None:
        return None
    for key, value in fields.items():
        setattr(membership, key, value)
    db.commit()
    return get_membership(db, membership_id)

def expire_memberships_before(db: Session, moment: datetime) -> int:
    updated = (
        db.query(Membership)
        .filter(Membership.status == MembershipStatus.ACTIVE, Membership.end_date < moment)
        .update({Membership.status: MembershipStatus.EXPIRED}, synchronize_session=False)
    )
    db.commit()
    return updated

# --- Check-ins (append-only) ---

def _checkin_query(db: Session):
    return db.query(Checkin).options(
        selectinload(Checkin.user),
        selectinload(Checkin.membership).selectinload(Membership.plan),
    )

def create_checkin(db: Session, *, user_id: str, membership_id: Optional[str], status: CheckinStatus, notes=None):
    checkin = Checkin(user_id=user_id, membership_id=membership_id, status=status, notes=notes)
    db.add(checkin)
    db.commit()
    return _checkin_query(db).filter(Checkin.id == checkin.id).one()

def count_checkins_since(db: Session, since: datetime, until: Optional[datetime] = None) -> int:
    q = db.query(func.count(Checkin.id)).filter(Checkin.timestamp >= since)
    if until is not None:
        q = q.filter(Checkin.timestamp < until)
    return q.scalar()

def find_checkins_in_range(db: Session, start: datetime, end: datetime):
    """Check-ins with start <= timestamp < end, newest first."""
    return (
        _checkin_query(db)
        .filter(Checkin.timestamp >= start, Checkin.timestamp < end)
        .order_by(Checkin.timestamp.desc())
        .all()
    )

def list_recent_checkins(db: Session, limit: int = 100):
    return _checkin_query(db).order_by(Checkin.timestamp.desc()).limit(limit).all()

def list_checkins_for_user(db: Session, user_id: str, limit: int = 50):
    return (
        _checkin_query(db)
        .filter(Checkin.user_id == user_id)
        .order_by(Checkin.timestamp.desc())
        .limit(limit)
        .all()
    )

# --- Payments (read-only aggregation) ---

def sum_payments(db: Session, status: PaymentStatus, since: Optional[datetime] = None, until: Optional[datetime] = None) -> Decimal:
    q = db.query(func.coalesce(func.sum(Payment.amount), 0)).filter(Payment.status == status)
    if since is not None:
        q = q.filter(Payment.paid_at >= since)
    if until is not None:
        q = q.filter(Payment.paid_at < until)
    return Decimal(str(q.scalar()))

def group_payments_by_method(db: Session, status: PaymentStatus):
    rows = (
        db.query(Payment.method, func.sum(Payment.amount))
        .filter(Payment.status == status)
        .group_by(Payment.method)
        .order_by(Payment.method)
        .all()
    )
    return [{"method": method.value, "total": Decimal(str(total or 0))} for method, total in rows]

def sum_payments_by_plan(db: Session, status: PaymentStatus):
    rows = (
        db.query(MembershipPlan.name, func.sum(Payment.amount), func.count(Payment.id))
        .select_from(Payment)
        .outerjoin(Membership, Payment.membership_id == Membership.id)
        .outerjoin(MembershipPlan, Membership.plan_id == MembershipPlan.id)
        .filter(Payment.status == status)
        .group_by(MembershipPlan.name)
        .all()
    )
    return [{"plan": name, "total": Decimal(str(total or 0)), "payments": count} for name, total, count in rows]

def list_payments(db: Session, status: PaymentStatus, since: Optional[datetime] = None):
    q = db.query(Payment).filter(Payment.status == status)
    if since is not None:
        q = q.filter(Payment.paid_at >= since)
    return q.order_by(Payment.paid_at.asc()).all()

def ping(db: Session) -> bool:
    db.execute(text("SELECT 1"))
    return True


class PersistenceGateway:
    """Async facade over the query functions above.

    Every call gets its own session and runs in the threadpool, so calls can be
    issued concurrently. Results are converted to pydantic schemas before the
    session closes; callers never see ORM instances.
    """

    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def _run(self, fn, *args, into=None, **kwargs):
        def call():
            with self._session_factory() as db:
                result = fn(db, *args, **kwargs)
                if into is None or result is None:
                    return result
                if isinstance(result, list):
                    return [into.model_validate(row) for row in result]
                return into.model_validate(result)
        try:
            return await run_in_threadpool(call)
        except (OperationalError, InterfaceError) as exc:
            logger.error(f"Database call {fn.__name__} failed: {exc}")
            raise DependencyUnavailable("Database unavailable") from exc

    async def ping(self) -> bool:
        return await self._run(ping)

    async def find_user(self, user_id: str) -> Optional[UserOut]:
        return await self._run(get_user, user_id, into=UserOut)

    async def find_plan(self, plan_id: str) -> Optional[PlanOut]:
        return await self._run(get_plan, plan_id, into=PlanOut)

    async def find_active_membership(self, user_id: str) -> Optional[MembershipOut]:
        return await self._run(find_active_membership, user_id, into=MembershipOut)

    async def find_membership(self, membership_id: str) -> Optional[MembershipOut]:
        return await self._run(get_membership, membership_id, into=MembershipOut)

    async def list_memberships_for_user(self, user_id: str):
        return await self._run(list_memberships_for_user, user_id, into=MembershipOut)

    async def count_memberships(self, status: MembershipStatus) -> int:
        return await self._run(count_memberships, status)

    async def count_memberships_expiring_by(self, deadline: datetime) -> int:
        return await self._run(count_memberships_expiring_by, deadline)

    async def create_membership(self, **fields) -> MembershipOut:
        return await self._run(create_membership, into=MembershipOut, **fields)

    async def update_membership(self, membership_id: str, **fields) -> Optional[MembershipOut]:
        return await self._run(update_membership, membership_id, into=MembershipOut, **fields)

    async def expire_memberships_before(self, moment: datetime) -> int:
        return await self._run(expire_memberships_before, moment)

    async def create_checkin(self, *, user_id, membership_id, status, notes=None) -> CheckinOut:
        return await self._run(
            create_checkin, into=CheckinOut, user_id=user_id, membership_id=membership_id, status=status, notes=notes
        )

    async def count_checkins_since(self, since: datetime, until: Optional[datetime] = None) -> int:
        return await self._run(count_checkins_since, since, until)

    async def find_checkins_in_range(self, start: datetime, end: datetime):
        return await self._run(find_checkins_in_range, start, end, into=CheckinOut)

    async def list_recent_checkins(self, limit: int = 100):
        return await self._run(list_recent_checkins, limit, into=CheckinOut)

    async def list_checkins_for_user(self, user_id: str, limit: int = 50):
        return await self._run(list_checkins_for_user, user_id, limit, into=CheckinOut)

    async def sum_payments(self, status: PaymentStatus, since=None, until=None) -> Decimal:
        return await self._run(sum_payments, status, since, until)

    async def group_payments_by_method(self, status: PaymentStatus):
        return await self._run(group_payments_by_method, status)

    async def sum_payments_by_plan(self, status: PaymentStatus):
        return await self._run(sum_payments_by_plan, status)

    async def list_payments(self, status: PaymentStatus, since=None):
        return await self._run(list_payments, status, since, into=PaymentOut)
