from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from pricecalendar.api import calendar, compare, health, status
from pricecalendar.api import settings as settings_api
from pricecalendar.config import get_settings
from pricecalendar.database import SessionLocal, init_db
from pricecalendar.services.hotel_details import HotelDetailsFetcher
from pricecalendar.services.page_session import PageSession
from pricecalendar.services.preferences import get_sort_by_price

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting price calendar service")

    if settings.database_url.startswith("sqlite"):
        logger.info("SQLite detected - creating tables if needed")
        init_db()

    session = PageSession(settings)
    db = SessionLocal()
    try:
        session.sort_by_price = get_sort_by_price(db)
    finally:
        db.close()

    app.state.page_session = session
    app.state.details_fetcher = HotelDetailsFetcher(session.client, settings)

    yield

    logger.info("Shutting down price calendar service")
    await session.close()


app = FastAPI(
    title="Booking Price Calendar",
    description="Price statistics for date-picker calendars and side-by-side hotel comparison",
    version="1.0.0",
    lifespan=lifespan
)

# The extension calls in from booking.com pages
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

app.include_router(calendar.router, prefix="/calendar", tags=["calendar"])
app.include_router(compare.router, prefix="/compare", tags=["compare"])
app.include_router(settings_api.router, prefix="/settings", tags=["settings"])
app.include_router(status.router, tags=["status"])
app.include_router(health.router, tags=["health"])


@app.get("/ping")
async def ping():
    """Simple ping endpoint for health checks."""
    return {"status": "ok"}
