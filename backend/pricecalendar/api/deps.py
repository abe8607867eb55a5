from fastapi import Request

from pricecalendar.services.hotel_details import HotelDetailsFetcher
from pricecalendar.services.page_session import PageSession


def get_page_session(request: Request) -> PageSession:
    return request.app.state.page_session


def get_details_fetcher(request: Request) -> HotelDetailsFetcher:
    return request.app.state.details_fetcher
