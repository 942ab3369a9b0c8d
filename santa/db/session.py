from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from santa.db.models import Base

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False)


def init_engine(database_url: str, create_schema: bool = False):
    engine = create_engine(database_url, pool_pre_ping=True, future=True)
    if create_schema:
        Base.metadata.create_all(engine)
    SessionLocal.configure(bind=engine)
    return engine


@contextmanager
def get_session():
    if SessionLocal.kw.get("bind") is None:
        raise RuntimeError("Database engine not initialized. Call init_engine() before use.")
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
