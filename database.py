from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from config import Settings, get_settings

# One connection per aggregation leg plus the request's own session.
READER_POOL_SIZE = 9


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def build_engine(settings: Settings) -> Engine:
    if _is_sqlite(settings.database_url):
        eng = create_engine(
            settings.database_url, connect_args={"check_same_thread": False}
        )
        event.listen(eng, "connect", _sqlite_on_connect)
        return eng
    return create_engine(
        settings.database_url,
        pool_size=READER_POOL_SIZE,
        max_overflow=READER_POOL_SIZE,
        pool_pre_ping=True,
    )


def _sqlite_on_connect(dbapi_conn, _record):
    # WAL lets the per-leg reader threads run alongside a writer.
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA foreign_keys=ON;")
    cursor.execute("PRAGMA busy_timeout=5000;")
    cursor.close()


engine = build_engine(get_settings())
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def session_factory_for(session: Session) -> sessionmaker:
    """Sessions bound to the same engine as ``session``, one per reader thread."""
    return sessionmaker(
        bind=session.get_bind(), autoflush=False, expire_on_commit=False
    )


@contextmanager
def session_scope() -> Iterator[Session]:
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
