# disclosure/db.py
from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from .config import settings

log = logging.getLogger("disclosure.db")


class Base(DeclarativeBase):
    pass


_engine_kwargs: dict = {"pool_pre_ping": True, "future": True}
if settings.database_url.startswith("sqlite"):
    # FastAPI runs sync handlers on a threadpool
    _engine_kwargs["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.database_url, **_engine_kwargs)


if engine.dialect.name == "sqlite":

    @event.listens_for(engine, "connect")
    def _sqlite_fk_pragma(dbapi_conn, _record) -> None:
        # SQLite ignores ForeignKey/ondelete unless asked per connection
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    expire_on_commit=False,
    future=True,
)


def get_db():
    """
    One session per request.

    If any statement fails the transaction is left aborted (Postgres), so the
    dependency rolls back on exceptions before the session is closed.
    """
    db = SessionLocal()
    try:
        yield db
    except Exception:
        try:
            db.rollback()
        except Exception:
            log.exception("rollback failed")
        raise
    finally:
        db.close()
