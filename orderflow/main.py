import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from orderflow.core.config import CORS_ORIGINS, DATABASE_URL
from orderflow.core.database import Base, engine
from orderflow.core.logging_setup import configure_logging
from orderflow.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    validate_identity_settings,
    validate_notification_settings,
)
from orderflow.middleware.observability import ObservabilityMiddleware
import orderflow.models  # garante que os models são importados antes do create_all
from orderflow.services.event_bus import event_bus
from orderflow.services.event_handlers import register_event_handlers

from orderflow.routers.admin_orders import router as admin_orders_router
from orderflow.routers.auth import router as auth_router
from orderflow.routers.context import router as context_router
from orderflow.routers.store import router as store_router

configure_logging()

logger = logging.getLogger(__name__)
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    _startup_tasks()
    yield
    event_bus.shutdown(wait=True)


app = FastAPI(
    title="Orderflow API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ObservabilityMiddleware)


def _startup_tasks() -> None:
    try:
        validate_database_environment()
        validate_identity_settings()
        validate_notification_settings()
        # Cria tabelas (dev). Em produção, use migrations.
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        register_event_handlers()
    except Exception:
        logger.exception("[STARTUP] ERROR startup failed")
        raise


# Routers
app.include_router(context_router)
app.include_router(store_router)
app.include_router(admin_orders_router)
app.include_router(auth_router)


@app.get("/")
def root():
    return {"status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}
