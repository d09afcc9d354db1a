from __future__ import annotations

import logging
from pathlib import Path

from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from orderflow.core.config import (
    ACCESS_CHECK_MAX_ATTEMPTS,
    ACCESS_STATUS_URL,
    DATABASE_URL,
    ENV_NORMALIZED,
    IDENTITY_JWT_SECRET,
    IS_DEV,
    IS_PROD,
    IS_TEST,
    NOTIFICATIONS_ASYNC,
    TELEGRAM_BOT_TOKEN,
)

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"


def validate_database_environment() -> None:
    if IS_PROD and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", STARTUP_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def validate_identity_settings() -> None:
    if not IDENTITY_JWT_SECRET:
        if IS_PROD:
            logger.critical("%s IDENTITY_JWT_SECRET is not configured", STARTUP_PREFIX)
            raise RuntimeError("IDENTITY_JWT_SECRET is required in production")
        logger.warning("%s IDENTITY_JWT_SECRET is empty; staff endpoints will reject every token", STARTUP_PREFIX)

    if ACCESS_CHECK_MAX_ATTEMPTS < 1:
        raise RuntimeError("ACCESS_CHECK_MAX_ATTEMPTS must be at least 1")
    logger.info(
        "%s access status source=%s attempts=%s",
        STARTUP_PREFIX,
        "http" if ACCESS_STATUS_URL else "database",
        ACCESS_CHECK_MAX_ATTEMPTS,
    )


def validate_notification_settings() -> None:
    # tenants may still carry their own bot token
    if not TELEGRAM_BOT_TOKEN:
        logger.info("%s TELEGRAM_BOT_TOKEN not set; only tenants with their own bot are notified", STARTUP_PREFIX)
    if not NOTIFICATIONS_ASYNC:
        logger.warning("%s NOTIFICATIONS_ASYNC disabled; order handlers run on the request thread", STARTUP_PREFIX)


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    if IS_TEST or IS_DEV:
        logger.info("%s skipped migration check env=%s", STARTUP_PREFIX, ENV_NORMALIZED)
        return

    if not alembic_config_path.exists():
        logger.critical("%s alembic config not found path=%s", STARTUP_PREFIX, alembic_config_path)
        raise RuntimeError("alembic config not found")

    expected_heads = set(ScriptDirectory.from_config(Config(str(alembic_config_path))).get_heads())
    with engine.connect() as connection:
        current_heads = set(MigrationContext.configure(connection).get_current_heads())

    if not current_heads:
        logger.critical("%s database has no migration state", STARTUP_PREFIX)
        raise RuntimeError("Database has no migration state")
    if current_heads != expected_heads:
        logger.critical(
            "%s pending migration detected current=%s expected=%s",
            STARTUP_PREFIX,
            sorted(current_heads),
            sorted(expected_heads),
        )
        raise RuntimeError("Pending migrations detected")

    logger.info("%s migration state verified heads=%s", STARTUP_PREFIX, sorted(current_heads))
