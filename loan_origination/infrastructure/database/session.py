"""Database engine and session factory"""

from typing import Any, Dict, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from loan_origination.config import settings


def engine_options(database_url: str) -> Dict[str, Any]:
    """SQLite (tests, local runs) needs cross-thread access; servers get a recycled pool"""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 10,
        "pool_recycle": 3600,
    }


engine = create_engine(settings.database_url, **engine_options(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Iterator[Session]:
    """Dependency injection for database sessions"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
