from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from orderflow.core.config import DATABASE_URL, PERSISTENCE_TIMEOUT_SECONDS


def _connect_args(database_url: str) -> dict:
    if database_url.startswith("sqlite"):
        # busy timeout: a locked database gives up instead of hanging the checkout
        return {"check_same_thread": False, "timeout": PERSISTENCE_TIMEOUT_SECONDS}
    if database_url.startswith("postgresql"):
        timeout_ms = int(PERSISTENCE_TIMEOUT_SECONDS * 1000)
        return {
            "connect_timeout": max(1, int(PERSISTENCE_TIMEOUT_SECONDS)),
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}",
        }
    return {}


engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args(DATABASE_URL),
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
