from __future__ import annotations

from typing import Any, Dict

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from app.core.config import Settings, get_settings


def build_engine(settings: Settings) -> Engine:
    """
    Every store call gets an explicit bound: pool checkout waits at most
    `db_pool_timeout_seconds`, and on postgres each statement is capped by
    `statement_timeout`.
    """
    url = settings.database_url
    kwargs: Dict[str, Any] = {"pool_pre_ping": True, "future": True}
    connect_args: Dict[str, Any] = {}

    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
        connect_args["timeout"] = settings.db_pool_timeout_seconds
    else:
        kwargs["pool_timeout"] = settings.db_pool_timeout_seconds
        if url.startswith("postgresql"):
            connect_args["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"

    return create_engine(url, connect_args=connect_args, **kwargs)


settings = get_settings()

engine = build_engine(settings)  # fail fast if DATABASE_URL missing

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
