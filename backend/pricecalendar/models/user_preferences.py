from sqlalchemy import Column, Integer, Boolean, DateTime
from sqlalchemy.sql import func
from pricecalendar.database import Base
from pricecalendar.config import get_settings


class UserPreferences(Base):
    """Device-synced preferences. A single row (id=1)."""
    __tablename__ = "user_preferences"

    id = Column(Integer, primary_key=True, default=1)

    # Fetch search pages with order=price so the cheapest listings are parsed first
    sort_by_price = Column(Boolean, default=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @classmethod
    def get_or_create(cls, db):
        prefs = db.query(cls).filter(cls.id == 1).first()
        if not prefs:
            prefs = cls(id=1, sort_by_price=get_settings().sort_by_price_default)
            db.add(prefs)
            db.commit()
            db.refresh(prefs)
        return prefs
