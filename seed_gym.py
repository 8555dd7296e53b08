#!/usr/bin/env python3
"""
Seed the database with the admin account and the plan catalog from plans.yaml,
then print an access token for the admin.
"""

import os
import sys
import yaml

from gymdesk.db import engine, SessionLocal
from gymdesk.models import Base, Role
from gymdesk.repository import create_user, get_user_by_email, upsert_plan
from gymdesk.security import create_user_token, hash_password

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@gymdesk.local")
ADMIN_PASSWORD = os.getenv("SEED_ADMIN_PASSWORD", "Admin123!")
PLANS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "plans.yaml")


def load_plans(path=PLANS_PATH):
    with open(path, "r") as f:
        catalog = yaml.safe_load(f)
    if not catalog or not catalog.get("plans"):
        raise RuntimeError(f"Plan catalog {path} is empty or malformed!")
    return catalog["plans"]


def seed():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = get_user_by_email(db, ADMIN_EMAIL)
        if admin:
            print(f"Admin already exists: {admin.email}")
        else:
            admin = create_user(
                db,
                email=ADMIN_EMAIL,
                role=Role.ADMIN,
                name="Administrator",
                password_hash=hash_password(ADMIN_PASSWORD),
            )
            print(f"Admin created: {admin.email}")

        for entry in load_plans():
            plan = upsert_plan(
                db,
                name=entry["name"],
                price=entry["price"],
                duration_days=int(entry["duration_days"]),
                currency=entry.get("currency", "MXN"),
            )
            print(f"Plan ready: {plan.name} ({plan.price} {plan.currency}, {plan.duration_days} days)")

        print(f"Admin token: {create_user_token(admin)}")
    except Exception as e:
        print(f"Seeding failed: {e}")
        db.rollback()
        return False
    finally:
        db.close()
    return True


if __name__ == "__main__":
    if not seed():
        sys.exit(1)
