import os
import threading
import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import settings
from .db import Base, engine, SessionLocal
from .logging import setup_logging, RequestIdMiddleware
from .auth.router import router as auth_router
from .routes.analytics import router as analytics_router
from .routes.assist import router as assist_router
from .routes.customers import router as customers_router
from .routes.files import router as files_router
from .routes.manager import router as manager_router
from .routes.notifications import router as notifications_router
from .routes.qr import router as qr_router
from .routes.schedule import router as schedule_router
from .services.assist import AssistNotFound, InvalidTransition, escalate_overdue_requests

log = structlog.get_logger(__name__)


def run_escalation_sweep_once() -> None:
    """One pass of the assist escalation sweep; failures are logged, never raised."""
    db = SessionLocal()
    try:
        escalate_overdue_requests(db)
    except SQLAlchemyError as e:
        db.rollback()
        log.warning("assist_sweep_failed", error=str(e))
    except Exception:
        db.rollback()
        log.exception("assist_sweep_crashed")
    finally:
        db.close()


def _escalation_sweep(interval_s: int) -> None:
    while True:
        time.sleep(interval_s)
        run_escalation_sweep_once()


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    limiter = Limiter(key_func=get_remote_address, default_limits=[settings.rate_limit])
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    @app.exception_handler(InvalidTransition)
    async def _invalid_transition(request: Request, exc: InvalidTransition):
        return JSONResponse(
            status_code=409,
            content={"detail": str(exc), "current": exc.current, "target": exc.target},
        )

    @app.exception_handler(AssistNotFound)
    async def _assist_not_found(request: Request, exc: AssistNotFound):
        return JSONResponse(status_code=404, content={"detail": "Assist request not found"})

    # Routers
    app.include_router(auth_router)
    app.include_router(customers_router)
    app.include_router(qr_router)
    app.include_router(assist_router)
    app.include_router(analytics_router)
    app.include_router(manager_router)
    app.include_router(schedule_router)
    app.include_router(notifications_router)
    app.include_router(files_router)

    # Metrics
    if settings.enable_metrics:
        Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            Base.metadata.create_all(bind=engine)
            log.info("db_tables_ready")
        if settings.assist_sweep_interval_s > 0:
            sweep = threading.Thread(
                target=_escalation_sweep,
                args=(settings.assist_sweep_interval_s,),
                name="assist-escalation-sweep",
                daemon=True,
            )
            sweep.start()
            log.info("assist_sweep_started", interval_s=settings.assist_sweep_interval_s)

    @app.get("/health")
    def health():
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ok", "environment": settings.environment}

    return app


app = create_app()
