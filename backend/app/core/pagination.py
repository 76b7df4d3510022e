from dataclasses import dataclass
from typing import Optional

from fastapi import Query

from app.core.config import get_settings


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_page_params(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
) -> PageParams:
    settings = get_settings()
    size = min(limit or settings.default_page_size, settings.max_page_size)
    return PageParams(page=page, limit=size)
