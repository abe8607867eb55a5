from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from pricecalendar.database import Base


class CompareEntryRecord(Base):
    """A listing the user saved for comparison, stored in local order."""
    __tablename__ = "compare_entries"

    # Listing URL path, e.g. /hotel/nl/amstel.html
    id = Column(String(500), primary_key=True)
    position = Column(Integer, nullable=False, default=0)
    payload = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime, server_default=func.now())
