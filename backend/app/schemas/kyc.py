from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class KycSubmit(BaseModel):
    document_type: Literal["passport", "national_id", "drivers_license"]
    document_number: str = Field(min_length=3, max_length=100)


class KycReview(BaseModel):
    decision: Literal["APPROVED", "REJECTED"]
    note: Optional[str] = None


class KycRead(BaseModel):
    id: int
    user_id: int
    document_type: str
    status: str
    reviewer_note: Optional[str] = None
    created_at: datetime
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
