# SQLAlchemy models
from pricecalendar.models.user_preferences import UserPreferences
from pricecalendar.models.compare_entry import CompareEntryRecord

__all__ = [
    "UserPreferences",
    "CompareEntryRecord",
]
