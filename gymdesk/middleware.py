import re
import time
import traceback
import uuid
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from gymdesk.config import CSP, ENABLE_HSTS
from gymdesk.errors import GymError
from gymdesk.logging_config import get_logger
from gymdesk.metrics import observe_request

logger = get_logger("gymdesk.http")

# Accept caller ids from the kiosk/proxy only when they look sane.
REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{1,64}$")

API_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Cache-Control": "no-store",
}

class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if REQUEST_ID_RE.match(incoming) else uuid.uuid4().hex
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

class TimingAccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            elapsed = time.perf_counter() - start
            # Label metrics by route template so ids in the path do not explode cardinality
            route = request.scope.get("route")
            observe_request(request.method, getattr(route, "path", "unmatched"), status, elapsed)
            logger.info(
                f"{request.method} {request.url.path} {status}",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "path": request.url.path,
                    "method": request.method,
                    "status": status,
                    "latency_ms": round(elapsed * 1000, 1),
                }
            )
        return response

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for header, value in API_SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if ENABLE_HSTS:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
        response.headers["Content-Security-Policy"] = CSP
        return response


HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
}

def error_envelope(request: Request, status_code: int, message, code: str):
    request_id = getattr(request.state, "request_id", None)
    return JSONResponse(
        status_code=status_code,
        content={"error": {"message": message, "code": code, "request_id": request_id}},
        headers={"X-Request-ID": request_id} if request_id else None,
    )

async def gym_error_handler(request: Request, exc: GymError):
    return error_envelope(request, exc.status_code, exc.detail, exc.code)

async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg')}")
    return error_envelope(request, 422, "; ".join(problems) or "Invalid request", "VALIDATION_ERROR")

async def http_error_handler(request: Request, exc):
    code = HTTP_CODES.get(exc.status_code, "HTTP_ERROR")
    response = error_envelope(request, exc.status_code, exc.detail, code)
    for key, value in (getattr(exc, "headers", None) or {}).items():
        response.headers[key] = value
    return response

class ErrorEnvelopeMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = getattr(request.state, "request_id", None)
            logger.error(f"Unhandled error: {exc} {traceback.format_exc()}", extra={"request_id": request_id})
            return error_envelope(request, 500, "Internal server error", "INTERNAL_SERVER_ERROR")
