from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from pricecalendar.api.deps import get_details_fetcher
from pricecalendar.config import get_settings
from pricecalendar.database import get_db
from pricecalendar.schemas.compare import CompareAddRequest, CompareListResponse
from pricecalendar.services.comparison import (
    CompareList,
    CompareListFull,
    extract_listing_card,
    filter_table,
    load_comparison,
)
from pricecalendar.services.hotel_details import HotelDetailsFetcher
from pricecalendar.services.preferences import CompareStore

router = APIRouter()


def load_compare_list(db: Session) -> CompareList:
    return CompareList.load(CompareStore(db), max_size=get_settings().max_compare)


def list_response(compare_list: CompareList) -> CompareListResponse:
    return CompareListResponse(
        entries=compare_list.entries,
        max_size=compare_list.max_size,
        is_full=compare_list.is_full,
    )


@router.get("", response_model=CompareListResponse)
async def get_compare_list(db: Session = Depends(get_db)):
    return list_response(load_compare_list(db))


@router.post("", response_model=CompareListResponse)
async def add_to_compare(request: CompareAddRequest, db: Session = Depends(get_db)):
    """Add a listing, either as a ready entry or as property-card HTML."""
    if request.entry is not None:
        entry = request.entry
    elif request.card_html:
        try:
            entry = extract_listing_card(request.card_html, base_url=get_settings().base_url)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    else:
        raise HTTPException(status_code=400, detail="Provide an entry or card_html")

    compare_list = load_compare_list(db)
    try:
        compare_list.add(entry)
    except CompareListFull as e:
        raise HTTPException(status_code=409, detail=str(e))
    return list_response(compare_list)


@router.get("/table")
async def get_comparison_table(
    tab: str = "all",
    differences_only: bool = False,
    db: Session = Depends(get_db),
    fetcher: HotelDetailsFetcher = Depends(get_details_fetcher),
):
    compare_list = load_compare_list(db)
    table = await load_comparison(compare_list.entries, fetcher.fetch)
    try:
        table = filter_table(table, tab=tab, differences_only=differences_only)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "entries": [e.model_dump() for e in table.entries],
        "sections": [asdict(s) for s in table.sections],
        "features": [asdict(s) for s in table.features],
        "has_features": table.has_features,
        "empty_differences": table.empty_differences,
    }


@router.delete("/{entry_id:path}", response_model=CompareListResponse)
async def remove_from_compare(entry_id: str, db: Session = Depends(get_db)):
    compare_list = load_compare_list(db)
    # Ids are URL paths; the leading slash is lost in the route
    if not compare_list.remove(entry_id) and not compare_list.remove("/" + entry_id):
        raise HTTPException(status_code=404, detail="Listing not in compare list")
    return list_response(compare_list)


@router.delete("", response_model=CompareListResponse)
async def clear_compare(db: Session = Depends(get_db)):
    compare_list = load_compare_list(db)
    compare_list.clear()
    return list_response(compare_list)
