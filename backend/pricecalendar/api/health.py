from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pricecalendar.database import get_db
from pricecalendar.api.deps import get_page_session
from pricecalendar.services.page_session import PageSession

router = APIRouter()


@router.get("/health")
async def health_check(db: Session = Depends(get_db), session: PageSession = Depends(get_page_session)):
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"

    return {
        "status": "ok" if db_status == "healthy" else "degraded",
        "database": db_status,
        "mode": session.mode,
        "cached_ranges": len(session.cache),
    }
