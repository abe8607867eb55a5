from fastapi import APIRouter

from pricecalendar.services.search_context import describe_page_status

router = APIRouter()


@router.get("/status")
async def page_status(url: str = ""):
    """Activation status for the page the user has open."""
    status = describe_page_status(url)
    return {"state": status.state, "text": status.text, "detail": status.detail}
