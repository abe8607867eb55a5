from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base
from pricecalendar.config import get_settings
import logging

logger = logging.getLogger(__name__)
settings = get_settings()

db_url = settings.database_url

engine = create_engine(
    db_url,
    connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables. Only used for SQLite deployments."""
    # Models must be imported so their tables are registered on Base.metadata
    from pricecalendar.models import CompareEntryRecord, UserPreferences  # noqa: F401

    Base.metadata.create_all(bind=engine)
    with engine.connect() as conn:
        tables = conn.execute(
            text("SELECT name FROM sqlite_master WHERE type='table'")
        ).fetchall()
    logger.info(f"SQLite tables ready: {sorted(t[0] for t in tables)}")
