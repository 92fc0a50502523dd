from __future__ import annotations

import math
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy.orm import Query


def iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def page_meta(total: int, page: int, limit: int) -> dict[str, int]:
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def paginate(q: Query, page: int, limit: int) -> tuple[list[Any], dict[str, int]]:
    """Apply offset/limit and return (rows, meta) in the list-endpoint envelope shape."""
    total = q.order_by(None).count()
    rows = q.offset((page - 1) * limit).limit(limit).all()
    return rows, page_meta(total, page, limit)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Columns are naive UTC; convert aware datetimes and drop tzinfo."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def round_half_up(value: float) -> int:
    """Percentages round .5 up (12.5 -> 13), not to even."""
    return int(math.floor(value + 0.5))
