import logging
from typing import List, Sequence

from pydantic import ValidationError
from sqlalchemy.orm import Session

from pricecalendar.models import CompareEntryRecord, UserPreferences
from pricecalendar.schemas.compare import CompareEntry

logger = logging.getLogger(__name__)


def get_sort_by_price(db: Session) -> bool:
    return bool(UserPreferences.get_or_create(db).sort_by_price)


def set_sort_by_price(db: Session, value: bool) -> UserPreferences:
    prefs = UserPreferences.get_or_create(db)
    prefs.sort_by_price = value
    db.commit()
    db.refresh(prefs)
    logger.info(f"sort_by_price set to {value}")
    return prefs


class CompareStore:
    """Compare list persisted as ordered rows, one per listing."""

    def __init__(self, db: Session):
        self.db = db

    def load(self) -> List[CompareEntry]:
        entries = []
        records = self.db.query(CompareEntryRecord).order_by(CompareEntryRecord.position).all()
        for record in records:
            try:
                entries.append(CompareEntry(**record.payload))
            except ValidationError as e:
                logger.warning(f"Skipping unreadable compare entry {record.id}: {e}")
        return entries

    def save(self, entries: Sequence[CompareEntry]):
        self.db.query(CompareEntryRecord).delete()
        for position, entry in enumerate(entries):
            self.db.add(CompareEntryRecord(id=entry.id, position=position, payload=entry.model_dump()))
        self.db.commit()
