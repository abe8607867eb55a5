from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pricecalendar.api.deps import get_page_session
from pricecalendar.database import get_db
from pricecalendar.models.user_preferences import UserPreferences
from pricecalendar.schemas.preferences import PreferencesResponse, PreferencesUpdate
from pricecalendar.services.page_session import PageSession
from pricecalendar.services.preferences import set_sort_by_price

router = APIRouter()


@router.get("/preferences", response_model=PreferencesResponse)
async def get_preferences(db: Session = Depends(get_db)):
    return UserPreferences.get_or_create(db)


@router.put("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    update: PreferencesUpdate,
    db: Session = Depends(get_db),
    session: PageSession = Depends(get_page_session),
):
    prefs = set_sort_by_price(db, update.sort_by_price)
    # Applies to fetches queued from now on
    session.sort_by_price = prefs.sort_by_price
    return prefs
