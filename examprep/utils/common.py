"""
Common utility functions used across services and routes.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Query


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso_format(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO string with Z suffix."""
    if dt is None:
        return None
    return dt.isoformat() + "Z"


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """[midnight, next midnight) for a calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def in_progress_key(user_id: int, test_id: str) -> str:
    return f"{user_id}:{test_id}"


def active_assignment_key(user_id: int) -> str:
    return str(user_id)


def daily_key(user_id: int, day: date) -> str:
    return f"{user_id}:{day.isoformat()}"


def paginate(query: Query, page: int, limit: int) -> tuple[list, dict]:
    """Apply page/limit to a query; returns (rows, pagination block)."""
    page = max(1, int(page))
    limit = max(1, min(100, int(limit)))
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    pages = (total + limit - 1) // limit
    return rows, {"page": page, "limit": limit, "total": total, "pages": pages}


def as_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize an incoming timestamp to naive UTC; naive input is taken as UTC."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
