from pydantic import BaseModel, Field, field_validator


class PointsBalance(BaseModel):
    status: str = "success"
    points: int


class PointsAdd(BaseModel):
    user_id: int
    points: int
    reason: str | None = Field(default=None, max_length=255)

    @field_validator("points")
    @classmethod
    def non_zero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("points must be non-zero")
        return v
