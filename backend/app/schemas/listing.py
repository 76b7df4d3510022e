from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import Pagination
from app.schemas.user import UserSummary


class ListingImageSchema(BaseModel):
    id: int
    file_path: str
    sort_order: int
    is_primary: bool

    model_config = ConfigDict(from_attributes=True)


class ListingBase(BaseModel):
    title: str = Field(max_length=255)
    description: Optional[str] = None
    type: Literal["PRODUCT", "SERVICE"] = "PRODUCT"
    price: Decimal = Field(ge=0, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    location: Optional[str] = Field(default=None, max_length=255)
    features: Optional[Dict[str, Any]] = None


class ListingCreate(ListingBase):
    pass


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    type: Optional[Literal["PRODUCT", "SERVICE"]] = None
    price: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    location: Optional[str] = Field(default=None, max_length=255)
    features: Optional[Dict[str, Any]] = None
    status: Optional[Literal["DRAFT", "ACTIVE", "SOLD", "ARCHIVED"]] = None


class ListingRead(ListingBase):
    id: int
    owner_id: int
    status: str
    created_at: datetime
    updated_at: datetime
    thumbnail_url: Optional[str] = None

    images: List[ListingImageSchema] = []
    owner: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class ListingPage(BaseModel):
    listings: List[ListingRead]
    pagination: Pagination
