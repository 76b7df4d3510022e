import math

from pydantic import BaseModel, Field


class Pagination(BaseModel):
    total: int
    pages: int
    currentPage: int
    limit: int


def build_pagination(total: int, page: int, limit: int) -> Pagination:
    return Pagination(
        total=total,
        pages=math.ceil(total / limit) if limit else 0,
        currentPage=page,
        limit=limit,
    )


class StatusMessage(BaseModel):
    status: str = "success"
    message: str = Field(default="")
