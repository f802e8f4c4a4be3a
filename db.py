# db.py
import os
from datetime import datetime, timezone
from sqlalchemy import create_engine, Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base

# --- DB URL normalizer (Render/Heroku compatibility) -------------------------
def _normalize_db_url(url: str) -> str:
    # Heroku-style URLs use postgres://; SQLAlchemy expects postgresql://
    return url.replace("postgres://", "postgresql://", 1) if url.startswith("postgres://") else url

DATABASE_URL = _normalize_db_url(os.getenv("DATABASE_URL", "")) or "sqlite:///./greencity.db"


def make_engine(url: str = DATABASE_URL):
    # SQLite needs this flag for multi-threaded FastAPI usage
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine = make_engine()
Base = declarative_base()

# --- Models -------------------------------------------------------------------
class KVEntry(Base):
    """One row per collection key; value is the JSON-serialized collection."""
    __tablename__ = "kv_store"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
                        onupdate=lambda: datetime.now(timezone.utc))

# --- Helpers ------------------------------------------------------------------
def init_db(bind=None):
    Base.metadata.create_all(bind=bind or engine)
