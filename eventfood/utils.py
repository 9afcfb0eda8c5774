from __future__ import annotations
from datetime import datetime, timezone

def now_utc() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)

def as_naive_utc(dt: datetime) -> datetime:
    # Stored datetimes are naive UTC; aware input is shifted before dropping the offset.
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)

def fmt_dt(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M")

def round_money(v: float) -> float:
    return round(float(v), 2)
