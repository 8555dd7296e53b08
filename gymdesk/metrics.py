from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

http_requests_total = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "path", "status"]
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds", "HTTP request duration", ["method", "path"]
)
checkins_total = Counter(
    "checkins_total", "Check-in attempts recorded in the ledger", ["status"]
)
dashboard_refresh_total = Counter(
    "dashboard_refresh_total", "Dashboard metric recomputations", ["trigger", "outcome"]
)
realtime_events_total = Counter(
    "realtime_events_total", "Realtime events published", ["event"]
)
realtime_subscribers = Gauge(
    "realtime_subscribers", "Currently connected realtime clients"
)

def observe_request(method, path, status, duration_seconds):
    http_requests_total.labels(method, path, status).inc()
    http_request_duration_seconds.labels(method, path).observe(duration_seconds)

def increment_checkin(status):
    checkins_total.labels(status).inc()

def increment_dashboard_refresh(trigger, outcome):
    dashboard_refresh_total.labels(trigger, outcome).inc()

def metrics_endpoint():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
