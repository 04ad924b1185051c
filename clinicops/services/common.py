"""
Small helpers shared by the domain services: paging, row serialization,
clock and document-number generation.
"""
import math
import secrets
import string
import time
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Optional

import pytz
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query

from ..config import settings


MAX_PAGE_SIZE = 200
_BASE36 = string.digits + string.ascii_uppercase


def utcnow() -> datetime:
    return datetime.utcnow()


def local_today() -> date:
    return datetime.now(pytz.timezone(settings.tz_default)).date()


def clamp_paging(page: Optional[int], limit: Optional[int], default_limit: int = 20):
    page = max(1, int(page or 1))
    limit = min(max(1, int(limit or default_limit)), MAX_PAGE_SIZE)
    return page, limit


def paginate(query: Query, page: Optional[int], limit: Optional[int], serialize: Callable[[Any], Any], default_limit: int = 20, extra: Optional[Dict] = None) -> Dict:
    page, limit = clamp_paging(page, limit, default_limit)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    result = {
        "items": [serialize(r) for r in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }
    if extra:
        result.update(extra)
    return result


def row_to_dict(row, exclude: Iterable[str] = (), rename: Optional[Dict[str, str]] = None) -> Dict:
    if row is None:
        return None
    rename = rename or {}
    excluded = set(exclude)
    out = {}
    for attr in sa_inspect(row).mapper.column_attrs:
        if attr.key in excluded:
            continue
        out[rename.get(attr.key, attr.key)] = getattr(row, attr.key)
    return out


def user_brief(user) -> Optional[Dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role, "position": user.position}


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_number(prefix: str) -> str:
    """PREFIX-<base36 millis><3 random chars>, e.g. PR-LZ3K9A1QX7B."""
    stamp = to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(3))
    return f"{prefix}-{stamp}{suffix}"


def month_bounds(year: int, month: int):
    """First day of the month and first day of the following month."""
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return start, end


def day_start(d: date) -> datetime:
    return datetime(d.year, d.month, d.day)
