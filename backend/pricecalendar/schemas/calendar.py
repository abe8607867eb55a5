from pydantic import BaseModel
from datetime import date
from typing import List, Optional


class NavigateRequest(BaseModel):
    url: str
    hard: bool = False


class PageHtmlRequest(BaseModel):
    html: str


class DestinationRequest(BaseModel):
    destination: str = ""
    dest_id: str = ""
    dest_type: str = ""


class VisibleDatesRequest(BaseModel):
    dates: List[date]


class PickRequest(BaseModel):
    date: date


class PickResponse(BaseModel):
    selected: Optional[date] = None
    queued: int = 0
    dismiss_picker: bool = False


class StatsResponse(BaseModel):
    min: float
    max: float
    avg: float
    count: int


class BadgeResponse(BaseModel):
    date: date
    state: str
    checkin: Optional[date] = None
    checkout: Optional[date] = None
    stats: Optional[StatsResponse] = None
    symbol: str
    label: str = ""
    suffix: str = ""
    color: Optional[str] = None


class SessionResponse(BaseModel):
    active: bool
    mode: str
    checkin: Optional[date] = None
    checkout: Optional[date] = None
    nights: Optional[int] = None
    destination: str = ""
    currency_symbol: str
    currency_code: str
    selected_checkin: Optional[date] = None
    cached_ranges: int = 0
    queued: int = 0
    in_flight: int = 0
