# File: civicbot/db/session.py
# Project: civic-report-bot

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from civicbot.core.config import settings

def _engine_options(url: str) -> dict:
    # SQLite (tests, local runs) does not take the server pool options
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 3600,
        "pool_timeout": 30,
    }

engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Create missing tables. Production schemas go through alembic."""
    from civicbot.db.base import Base
    from civicbot.models import user, chat, issue, attachment, status_change, comment, broadcast  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)
