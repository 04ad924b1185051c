import os
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.middleware import SlowAPIMiddleware

from .config import settings
from .db import Base, engine, SessionLocal
from .errors import install_exception_handlers
from .logging import setup_logging, RequestIdMiddleware
from .ratelimit import limiter
from .auth.router import router as auth_router
from .routes.users import router as users_router
from .routes.permissions import router as permissions_router
from .routes.notifications import router as notifications_router
from .routes.audit import router as audit_router
from .routes.handover import router as handover_router
from .routes.inventory import router as inventory_router
from .routes.scheduling import router as scheduling_router
from .routes.hr import router as hr_router
from .routes.assets import router as assets_router
from .routes.procurement import router as procurement_router
from .routes.quality import router as quality_router
from .routes.documents import router as documents_router
from .routes.finance import router as finance_router
from .routes.dashboard import router as dashboard_router


logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title=settings.app_name)

    # Middlewares
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    install_exception_handlers(app)

    # Routers
    for router in (
        auth_router,
        users_router,
        permissions_router,
        notifications_router,
        audit_router,
        handover_router,
        inventory_router,
        scheduling_router,
        hr_router,
        assets_router,
        procurement_router,
        quality_router,
        documents_router,
        finance_router,
        dashboard_router,
    ):
        app.include_router(router, prefix=settings.api_prefix)

    @app.get(f"{settings.api_prefix}/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    # Metrics
    Instrumentator().instrument(app).expose(app)

    @app.on_event("startup")
    def _startup():
        logger.info("startup", environment=settings.environment)
        # Ensure local SQLite directory exists
        if settings.database_url.startswith("sqlite:///./"):
            os.makedirs("var", exist_ok=True)
        if settings.auto_create_db:
            from .models import models  # noqa: F401  register tables

            Base.metadata.create_all(bind=engine)
            logger.info("startup_tables_verified", tables=len(Base.metadata.tables))
        db = SessionLocal()
        try:
            from .services.users import ensure_bootstrap_admin

            admin = ensure_bootstrap_admin(db)
            if admin is not None:
                logger.info("bootstrap_admin_created", user_id=str(admin.id))
        finally:
            db.close()

    return app


app = create_app()
