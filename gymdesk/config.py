import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gymdesk.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "your-secret-key-change-in-production")
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "MXN")

# Dashboard cache and realtime refresh
METRICS_CACHE_TTL_SECONDS = int(os.getenv("METRICS_CACHE_TTL_SECONDS", "30"))
EXPIRING_SOON_DAYS = int(os.getenv("EXPIRING_SOON_DAYS", "3"))
DASHBOARD_REFRESH_INTERVAL_SECONDS = int(os.getenv("DASHBOARD_REFRESH_INTERVAL_SECONDS", "60"))
DASHBOARD_FALLBACK_INTERVAL_SECONDS = int(os.getenv("DASHBOARD_FALLBACK_INTERVAL_SECONDS", "600"))
DASHBOARD_INITIAL_REFRESH_DELAY_SECONDS = int(os.getenv("DASHBOARD_INITIAL_REFRESH_DELAY_SECONDS", "10"))
MEMBERSHIP_SWEEP_INTERVAL_SECONDS = int(os.getenv("MEMBERSHIP_SWEEP_INTERVAL_SECONDS", "3600"))
SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "true").lower() == "true"

# HTTP hardening
ENABLE_HSTS = os.getenv("ENABLE_HSTS", "true").lower() == "true"
CSP = os.getenv("CSP", "default-src 'none'; frame-ancestors 'none'")

# Calendar days and hours in reports follow the gym's wall clock; storage stays UTC
GYM_TIMEZONE = os.getenv("GYM_TIMEZONE", "America/Mexico_City")
