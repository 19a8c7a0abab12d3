from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

from workhub.config import API_PREFIX, APP_NAME, APP_VERSION, Settings
from workhub.db import build_store
from workhub.exception_handlers import register_exception_handlers
from workhub.middleware.correlation_id import CorrelationIdMiddleware
from workhub.middleware.structured_logging_middleware import StructuredLoggingMiddleware
from workhub.routers.attendance import router as attendance_router
from workhub.routers.branches import router as branches_router
from workhub.routers.email_marketing import router as email_marketing_router
from workhub.routers.email_tracking import router as email_tracking_router
from workhub.services.email import MailTransport, SesMailTransport
from workhub.store.base import DocumentStore

ROOT_DIR = Path(__file__).parent

# Load .env only if exists (development fallback)
env_path = ROOT_DIR / ".env"
if env_path.exists():
    load_dotenv(env_path)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("workhub")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    mail_transport: Optional[MailTransport] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()

    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.settings = settings
    app.state.store = store
    app.state.mail_transport = mail_transport or SesMailTransport.from_settings(settings)

    # Last added runs first: CORS, then correlation id, then the access log.
    if settings.structured_access_log:
        app.add_middleware(StructuredLoggingMiddleware)
    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Routers (/api prefix is on each router)
    app.include_router(attendance_router)
    app.include_router(branches_router)
    app.include_router(email_marketing_router)
    app.include_router(email_tracking_router)

    @app.get(f"{API_PREFIX}/health")
    async def health() -> dict[str, Any]:
        """Health check with a store ping"""
        current = app.state.store
        ok = bool(current is not None and await current.ping())
        return {"ok": ok, "service": "workhub", "mail_configured": app.state.mail_transport.is_configured()}

    @app.get("/health")
    @app.get("/health/")
    async def deployment_health() -> dict[str, Any]:
        """Simple liveness check"""
        return {"ok": True, "service": "workhub", "status": "healthy"}

    @app.on_event("startup")
    async def _startup() -> None:
        if app.state.store is None:
            app.state.store = build_store(settings)
            app.state.owns_store = True
        if not app.state.mail_transport.is_configured():
            logger.warning("Mail transport is not configured; campaign sends will be rejected")
        logger.info("Startup complete (store=%s)", settings.store_backend)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        if getattr(app.state, "owns_store", False) and app.state.store is not None:
            await app.state.store.close()
            app.state.store = None
        logger.info("Shutdown complete")

    return app


app = create_app()
