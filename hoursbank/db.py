from __future__ import annotations
from typing import Generator
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from .utils.settings import DATABASE_URL


def make_engine(url: str = DATABASE_URL) -> Engine:
    engine_kwargs = dict(pool_pre_ping=True, future=True)
    if not url.startswith("sqlite"):
        return create_engine(url, **engine_kwargs)

    eng = create_engine(url, connect_args={"check_same_thread": False}, **engine_kwargs)

    # cascade delete 依賴 SQLite 的 foreign key 檢查
    @event.listens_for(eng, "connect")
    def _sqlite_pragmas(dbapi_connection, _):
        cur = dbapi_connection.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        if ":memory:" not in url:
            cur.execute("PRAGMA journal_mode=WAL")
            cur.execute("PRAGMA synchronous=NORMAL")
        cur.close()

    return eng


def make_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False, future=True)


engine = make_engine(DATABASE_URL)
Base = declarative_base()
SessionLocal = make_sessionmaker(engine)

def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

__all__ = ["DATABASE_URL", "engine", "Base", "SessionLocal", "get_db", "make_engine", "make_sessionmaker"]
