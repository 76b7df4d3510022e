from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Pagination
from app.schemas.user import UserSummary


class OfferCreate(BaseModel):
    listing_id: int
    price: Decimal = Field(ge=0, decimal_places=2)
    message: Optional[str] = Field(default=None, max_length=2000)


class OfferRespond(BaseModel):
    status: Literal["ACCEPTED", "REJECTED"]


class OfferListingSummary(BaseModel):
    id: int
    title: str
    price: Decimal
    currency: str
    status: str

    model_config = ConfigDict(from_attributes=True)


class OfferRead(BaseModel):
    id: int
    listing_id: int
    buyer_id: int
    seller_id: int
    price: Decimal
    message: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime

    listing: Optional[OfferListingSummary] = None
    buyer: Optional[UserSummary] = None
    seller: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class OfferPage(BaseModel):
    offers: List[OfferRead]
    pagination: Pagination
