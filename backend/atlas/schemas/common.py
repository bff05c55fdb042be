"""Shared schema pieces — camelCase wire format, pagination, timestamps."""

import math
from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class ApiModel(BaseModel):
    """Response model: snake_case in Python, camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class RequestModel(ApiModel):
    """Request body: same aliasing, unknown fields rejected."""

    class Config:
        extra = "forbid"


class Page(ApiModel, Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, items: list, total: int, page: int, limit: int) -> "Page":
        return cls(
            items=items,
            total=total,
            page=page,
            limit=limit,
            total_pages=math.ceil(total / limit) if limit else 0,
        )


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 string in UTC. SQLite hands back naive datetimes, which are UTC here."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()
