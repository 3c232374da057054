from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from enquiries.config import AppConfig, load_config
from enquiries.db.base import get_engine
from enquiries.db.migrations_runner import apply_migrations
from enquiries.http.problem import (
    handle_enquiry_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from enquiries.http.request_id import RequestIdMiddleware
from enquiries.logging_setup import configure_logging
from enquiries.logic.enquiry_service import EnquiryService, build_enquiry_service
from enquiries.logic.errors import EnquiryError
from enquiries.routes import api_router

logger = logging.getLogger(__name__)


def _health_check(engine: Engine) -> Callable[[], dict]:
    def check() -> dict:
        try:
            with engine.connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except SQLAlchemyError as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def _auto_migrate_enabled(engine: Engine) -> bool:
    flag = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()
    if flag in {"1", "true", "yes", "on"}:
        return True
    if flag in {"0", "false", "no", "off"}:
        return False
    # A fresh in-memory database is unusable without its schema
    return engine.dialect.name == "sqlite" and ":memory:" in str(engine.url)


def create_app(config: Optional[AppConfig] = None, service: Optional[EnquiryService] = None) -> FastAPI:
    """Build the FastAPI application.

    `service` lets callers inject collaborators (capability gate, search
    sync, stores); by default they are wired from configuration.
    """
    try:
        configure_logging()
    except Exception:
        logging.getLogger(__name__).error("global_logging_configuration_failed", exc_info=True)

    cfg = config or load_config()
    engine = get_engine(cfg.database.dsn)

    app = FastAPI(title="Enquiry Service")
    app.state.config = cfg
    app.state.enquiry_service = service or build_enquiry_service(cfg, engine=engine)

    app.add_exception_handler(EnquiryError, handle_enquiry_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
    app.add_middleware(RequestIdMiddleware)

    # Apply migrations on startup (guarded) to avoid import-time side effects
    @app.on_event("startup")
    def _apply_migrations() -> None:
        if not _auto_migrate_enabled(engine):
            logger.info("AUTO_APPLY_MIGRATIONS disabled; skipping migrations at startup")
            return
        try:
            applied = apply_migrations(engine)
        except Exception:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise
        logger.info("startup_migrations_applied count=%s", len(applied))

    app.include_router(api_router, prefix="/api/v1")

    health_check = _health_check(engine)

    @app.get("/health")
    def health():
        return health_check()

    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
