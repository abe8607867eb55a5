from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class PreferencesResponse(BaseModel):
    sort_by_price: bool
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PreferencesUpdate(BaseModel):
    sort_by_price: bool
