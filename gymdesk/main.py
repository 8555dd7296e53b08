from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from gymdesk.config import SCHEDULER_ENABLED
from gymdesk.db import engine
from gymdesk.dependencies import dashboard_scheduler
from gymdesk.errors import GymError
from gymdesk.logging_config import setup_logging, get_logger
from gymdesk.middleware import (
    ErrorEnvelopeMiddleware, RequestIDMiddleware, SecurityHeadersMiddleware, TimingAccessLogMiddleware,
    gym_error_handler, http_error_handler, validation_error_handler,
)
from gymdesk.models import Base
from gymdesk.routes.checkins import router as checkins_router
from gymdesk.routes.dashboard import router as dashboard_router
from gymdesk.routes.memberships import router as memberships_router
from gymdesk.routes.ops import router as ops_router
from gymdesk.routes.realtime import router as realtime_router

setup_logging()
logger = get_logger("gymdesk")

app = FastAPI(title="Gym Desk API", version="1.0.0")

# Outermost last: request id is assigned before anything logs.
app.add_middleware(ErrorEnvelopeMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TimingAccessLogMiddleware)
app.add_middleware(RequestIDMiddleware)

app.add_exception_handler(GymError, gym_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, validation_error_handler)

@app.get("/")
def root():
    return {"service": "gymdesk", "status": "ok"}

@app.on_event("startup")
async def on_startup():
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")
    if SCHEDULER_ENABLED:
        await dashboard_scheduler.start()

@app.on_event("shutdown")
async def on_shutdown():
    await dashboard_scheduler.stop()

app.include_router(checkins_router)
app.include_router(dashboard_router)
app.include_router(memberships_router)
app.include_router(ops_router)
app.include_router(realtime_router)
