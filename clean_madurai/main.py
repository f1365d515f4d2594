from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clean_madurai.auth import LocalAuthProvider
from clean_madurai.config import settings
from clean_madurai.database import engine, get_store
from clean_madurai.models import Base
from clean_madurai.routes import auth as auth_routes
from clean_madurai.routes import blobs as blob_routes
from clean_madurai.routes import complaints as complaint_routes
from clean_madurai.routes import dashboard as dashboard_routes
from clean_madurai.routes import officers as officer_routes
from clean_madurai.routes import profile as profile_routes
from clean_madurai.routes import zones as zone_routes
from clean_madurai.services.account_service import AccountService
from clean_madurai.services.blob_store import get_blob_store

logger = logging.getLogger("clean_madurai")


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = FastAPI(title=settings.app_name)

    origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_routes.router)
    app.include_router(zone_routes.router)
    app.include_router(complaint_routes.router)
    app.include_router(officer_routes.router)
    app.include_router(dashboard_routes.router)
    app.include_router(profile_routes.router)
    app.include_router(blob_routes.router)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    @app.on_event("startup")
    def _startup() -> None:
        logger.info("[CONFIG] APP_ENV=%s", settings.env)
        logger.info("[CONFIG] DATABASE_URL=%s", settings.database_url)
        logger.info("[CONFIG] BLOB_DIR=%s", settings.blob_dir)
        logger.info("[CONFIG] COMPLAINT_CLASSIFIER=%s", settings.complaint_classifier)
        logger.info("[CONFIG] SEED_ADMIN_ON_STARTUP=%s", settings.seed_admin_on_startup)

        if settings.recreate_db_on_startup:
            Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)

        if not settings.seed_admin_on_startup:
            return
        store = get_store()
        accounts = AccountService(store, LocalAuthProvider(store), get_blob_store())
        accounts.ensure_admin(settings.admin_email, settings.admin_password, settings.admin_name)

    return app


app = create_app()
