# brezcode/db.py
from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .debug_utils import log
from .models import Base

# postgresql+psycopg2://... in production; sqlite:// (memory) under pytest
DATABASE_URL = (settings.DATABASE_URL or "").strip() or "sqlite:///./brezcode.db"


def make_engine(url: str) -> Engine:
    """Build an engine; in-memory SQLite shares one connection across threads."""
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True, future=True)
    sqlite_args = {"check_same_thread": False}
    if url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url:
        return create_engine(url, connect_args=sqlite_args, poolclass=StaticPool, future=True)
    return create_engine(url, connect_args=sqlite_args, future=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def test_connection(bind: Engine | None = None) -> bool:
    """True when a trivial query succeeds; failures are logged, never raised."""
    bind = bind or engine
    try:
        with bind.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        log("db", f"WARN: {bind.url.get_backend_name()} unreachable: {e}")
        return False
    log("db", f"connected ({bind.url.get_backend_name()})")
    return True


# not a pytest test, despite the name
test_connection.__test__ = False


def init_db(bind: Engine | None = None) -> None:
    """Create the training tables if missing (safe to call on every start)."""
    Base.metadata.create_all(bind=bind or engine)
