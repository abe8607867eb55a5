from pydantic import BaseModel
from typing import List, Optional


class CompareEntry(BaseModel):
    """A listing saved for comparison, as shown on its search-result card."""
    id: str
    name: str = ""
    url: str = ""
    img: str = ""
    stars: int = 0
    score: str = ""
    score_label: str = ""
    review_count: str = ""
    location: str = ""
    distance: str = ""
    price: str = ""
    orig_price: str = ""
    nights: str = ""
    room: str = ""
    payment: str = ""


class CompareAddRequest(BaseModel):
    """Either a ready entry or the HTML of a property card to parse."""
    entry: Optional[CompareEntry] = None
    card_html: Optional[str] = None


class CompareListResponse(BaseModel):
    entries: List[CompareEntry]
    max_size: int
    is_full: bool
