"""
Test fixtures for price calendar backend tests.
"""
import httpx
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from httpx import AsyncClient, ASGITransport

from pricecalendar.config import Settings
from pricecalendar.database import Base, get_db
from pricecalendar.main import app
from pricecalendar.scrapers.booking_client import BookingClient
from pricecalendar.services.hotel_details import HotelDetailsFetcher
from pricecalendar.services.page_session import PageSession


# Create test database engine (SQLite in-memory)
TEST_DATABASE_URL = "sqlite:///:memory:"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)


# Enable foreign key constraints for SQLite
@event.listens_for(test_engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


SEARCH_RESULTS_HTML = """
<html><body>
  <div data-testid="property-card-container">
    <span data-testid="price-and-discounted-price">€ 120</span>
  </div>
  <div data-testid="property-card-container">
    <span data-testid="price-and-discounted-price">€ 95</span>
  </div>
  <div data-testid="property-card-container">
    <span data-testid="price-and-discounted-price">€ 210</span>
  </div>
</body></html>
"""

HOTEL_PAGE_HTML = """
<html><head>
  <meta property="og:image" content="https://cf.bstatic.com/xdata/images/hotel/max500/111.jpg?k=abc">
</head><body>
  <div data-testid="property-most-popular-facilities-wrapper">
    <ul><li class="f6b6d2a959">Free WiFi</li><li class="f6b6d2a959">Pool</li></ul>
  </div>
  <div data-testid="facility-group-container">
    <h3>Bathroom</h3>
    <ul><li>Towels</li><li>Hairdryer</li></ul>
  </div>
  <div data-testid="poi-block">
    <h3>What's nearby</h3>
    <ul data-testid="poi-block-list">
      <li><span role="listitem"><div><div>Dam Square</div><div>300 m</div></div></span></li>
    </ul>
  </div>
</body></html>
"""


def booking_handler(request: httpx.Request) -> httpx.Response:
    """Stand-in for Booking.com: search pages list three prices, hotel pages have details."""
    if request.url.path == "/searchresults.html":
        return httpx.Response(200, text=SEARCH_RESULTS_HTML)
    if request.url.path.startswith("/hotel/"):
        return httpx.Response(200, text=HOTEL_PAGE_HTML)
    return httpx.Response(404, text="Not found")


@pytest.fixture
def test_settings():
    """Settings with every delay zeroed and browser rendering off."""
    return Settings(
        fetch_delay_seconds=0,
        fetch_stagger_seconds=0,
        rate_limit_cooldown_seconds=0,
        detail_retry_delay_seconds=0,
        rendered_capture_enabled=False,
    )


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Creates all tables before the test and drops them after.
    """
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def override_get_db(db_session):
    """
    Override the get_db dependency to use the test database session.
    """
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    return _override_get_db


@pytest.fixture(scope="function")
def page_session(test_settings):
    booking = BookingClient(test_settings, transport=httpx.MockTransport(booking_handler))
    return PageSession(test_settings, client=booking)


@pytest.fixture(scope="function")
async def client(override_get_db, page_session, test_settings):
    """
    Create an async test client with the database dependency overridden.

    ASGITransport does not run the lifespan, so the per-page state it would
    create is attached here.
    """
    app.dependency_overrides[get_db] = override_get_db
    app.state.page_session = page_session
    app.state.details_fetcher = HotelDetailsFetcher(page_session.client, test_settings)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clear overrides after test
    app.dependency_overrides.clear()
    await page_session.close()
