from pricecalendar.schemas.compare import CompareEntry, CompareAddRequest, CompareListResponse
from pricecalendar.schemas.calendar import (
    NavigateRequest, PageHtmlRequest, DestinationRequest, VisibleDatesRequest,
    PickRequest, PickResponse, BadgeResponse, StatsResponse, SessionResponse,
)
from pricecalendar.schemas.preferences import PreferencesResponse, PreferencesUpdate

__all__ = [
    "CompareEntry", "CompareAddRequest", "CompareListResponse",
    "NavigateRequest", "PageHtmlRequest", "DestinationRequest", "VisibleDatesRequest",
    "PickRequest", "PickResponse", "BadgeResponse", "StatsResponse", "SessionResponse",
    "PreferencesResponse", "PreferencesUpdate",
]
