# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Database plumbing shared by the API, the migrations and the operator
scripts.

* ``engine`` / ``SessionLocal`` / ``Base`` – one engine per process.
* ``get_db`` – FastAPI dependency, one session per request.
* ``session_scope`` – the same for scripts, committing on success.
"""

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from core.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Sync handlers run on FastAPI's thread pool
        return {"connect_args": {"check_same_thread": False}}
    # MySQL drops idle connections after wait_timeout
    return {"pool_pre_ping": True, "pool_recycle": 3600}


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """Yield a request-scoped session; use with Depends(get_db)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts: commit on success, roll back on any error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
