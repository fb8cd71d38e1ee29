import logging
import threading
import time
from datetime import datetime

from fastapi import FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from iobuilds_shared import RedisRateLimiter, SlidingWindowLimiter

from .config import settings
from .database import engine, session_scope
from .errors import (
    AppError,
    app_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from .metrics import REQ, REQ_DURATION
from .middleware_request_id import RequestIDMiddleware
from .models import Base
from .otp_utils import otp_config
from .routers import admin as admin_router
from .routers import otp as otp_router
from .routers import sms as sms_router
from .session_store import SqlSessionStore

logger = logging.getLogger("messaging")


def _purge_loop(interval: int) -> None:
    while True:
        time.sleep(interval)
        try:
            with session_scope() as db:
                deleted = SqlSessionStore(db).purge_stale(datetime.utcnow(), otp_config().reset_grace)
            if deleted:
                logger.info("Purged %d stale OTP sessions", deleted)
        except Exception:
            logger.exception("OTP purge failed")


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    app = FastAPI(title="IO Builds Messaging API", version="0.1.0")

    allowed_origins = settings.ALLOWED_ORIGINS or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    if settings.RATE_LIMIT_BACKEND == "redis":
        app.add_middleware(
            RedisRateLimiter,
            redis_url=settings.REDIS_URL,
            limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auth_boost=settings.RATE_LIMIT_AUTH_BOOST,
            prefix=settings.RATE_LIMIT_REDIS_PREFIX,
        )
    else:
        app.add_middleware(
            SlidingWindowLimiter,
            limit_per_minute=settings.RATE_LIMIT_PER_MINUTE,
            auth_boost=settings.RATE_LIMIT_AUTH_BOOST,
        )

    if settings.AUTO_CREATE_SCHEMA:
        Base.metadata.create_all(bind=engine)

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("select 1"))
        return {"status": "ok", "env": settings.ENV}

    @app.middleware("http")
    async def _metrics_mw(request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        route = getattr(request.scope.get("route"), "path", None) or request.url.path
        REQ.labels(request.method, route, str(response.status_code)).inc()
        REQ_DURATION.labels(request.method, route).observe(duration)
        return response

    @app.get("/metrics")
    def metrics():
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(otp_router.router)
    app.include_router(sms_router.router)
    app.include_router(admin_router.router)

    if settings.OTP_PURGE_POLL_SECS > 0:
        threading.Thread(target=_purge_loop, args=(settings.OTP_PURGE_POLL_SECS,), daemon=True).start()
    return app


app = create_app()


def main() -> None:
    import uvicorn
    uvicorn.run("app.main:app", host=settings.APP_HOST, port=settings.APP_PORT)
