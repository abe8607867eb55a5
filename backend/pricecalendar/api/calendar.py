from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from pricecalendar.api.deps import get_page_session
from pricecalendar.schemas.calendar import (
    BadgeResponse,
    DestinationRequest,
    NavigateRequest,
    PageHtmlRequest,
    PickRequest,
    PickResponse,
    SessionResponse,
    StatsResponse,
    VisibleDatesRequest,
)
from pricecalendar.services.page_session import PageSession

router = APIRouter()


def session_summary(session: PageSession) -> SessionResponse:
    context = session.context
    return SessionResponse(
        active=context is not None,
        mode=session.mode,
        checkin=context.checkin if context else None,
        checkout=context.checkout if context else None,
        nights=context.nights if context else None,
        destination=context.dest if context else session.destination,
        currency_symbol=session.currency.symbol,
        currency_code=session.currency.code,
        selected_checkin=session.selection.selected,
        cached_ranges=len(session.cache),
        queued=len(session.scheduler.queued_keys),
        in_flight=len(session.scheduler.in_flight_keys),
    )


@router.get("", response_model=SessionResponse)
async def get_session(session: PageSession = Depends(get_page_session)):
    return session_summary(session)


@router.post("/navigate", response_model=SessionResponse)
async def navigate(request: NavigateRequest, session: PageSession = Depends(get_page_session)):
    """Report a page load (hard) or an in-app URL change (soft)."""
    await session.navigate(request.url, hard=request.hard)
    return session_summary(session)


@router.post("/page")
async def ingest_page(request: PageHtmlRequest, session: PageSession = Depends(get_page_session)):
    """Prices scraped from the results page the user is viewing."""
    extraction = session.ingest_page(request.html)
    return {
        "prices": len(extraction.prices),
        "strategy": extraction.strategy,
        "stored": session.context is not None and bool(extraction.prices),
    }


@router.post("/destination", response_model=SessionResponse)
async def set_destination(request: DestinationRequest, session: PageSession = Depends(get_page_session)):
    session.set_destination(request.destination, request.dest_id, request.dest_type)
    return session_summary(session)


@router.post("/dates")
async def register_dates(request: VisibleDatesRequest, session: PageSession = Depends(get_page_session)):
    queued = session.register_dates(request.dates)
    return {"registered": len(request.dates), "queued": queued}


@router.post("/pick", response_model=PickResponse)
async def pick_date(request: PickRequest, session: PageSession = Depends(get_page_session)):
    result, queued = session.pick(request.date)
    return PickResponse(selected=result.selected, queued=queued, dismiss_picker=result.dismiss_picker)


@router.get("/badges", response_model=List[BadgeResponse])
async def get_badges(
    dates: Optional[str] = Query(None, description="Comma-separated ISO dates; defaults to registered dates"),
    session: PageSession = Depends(get_page_session),
):
    requested = None
    if dates:
        try:
            requested = [date.fromisoformat(d.strip()) for d in dates.split(",") if d.strip()]
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid date: {e}")

    return [
        BadgeResponse(
            date=badge.date,
            state=badge.state,
            checkin=badge.checkin,
            checkout=badge.checkout,
            stats=StatsResponse(**badge.stats.to_dict()) if badge.stats else None,
            symbol=badge.symbol,
            label=badge.label,
            suffix=badge.suffix,
            color=badge.color,
        )
        for badge in session.badges(requested)
    ]
