"""Read-time listing status.

Stored status is only ever ``available`` or ``claimed``. ``expired`` is an
overlay computed on every read from ``expiresAt`` and the current time; nothing
here writes to the store.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

AVAILABLE = "available"
CLAIMED = "claimed"
EXPIRED = "expired"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Normalize a stored timestamp. Mongo may return naive datetimes; treat naive as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def effective_status(stored_status: str, expires_at: Union[datetime, str, None], now: Optional[datetime] = None) -> str:
    if stored_status != AVAILABLE:
        return stored_status
    expires = as_utc(expires_at)
    if expires is None:
        return stored_status
    now = as_utc(now) if now is not None else utcnow()
    return EXPIRED if now > expires else AVAILABLE


def with_effective_status(listing: Dict[str, Any], now: Optional[datetime] = None) -> Dict[str, Any]:
    view = dict(listing)
    view["status"] = effective_status(listing.get("status", AVAILABLE), listing.get("expiresAt"), now)
    return view
