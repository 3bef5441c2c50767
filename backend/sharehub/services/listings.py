import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, get_args

from ..errors import Forbidden, InvalidRequest, NotFound
from ..schemas.listings import Category, ListingCreate, ListingUpdate
from .claims import new_id
from .identity import Identity, require_identity
from .lifecycle import AVAILABLE, CLAIMED, EXPIRED, as_utc, utcnow, with_effective_status

logger = logging.getLogger("uvicorn.error")

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _require_user_id(user_id: Optional[str]) -> str:
    user_id = (user_id or "").strip()
    if not user_id:
        raise InvalidRequest("userId is required")
    return user_id


async def create_listing(
    store,
    identity: Optional[Identity],
    payload: ListingCreate,
    *,
    ttl_days: int = 30,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    caller = require_identity(identity)
    now = now or utcnow()
    expires_at = as_utc(payload.expiresAt) if payload.expiresAt else now + timedelta(days=ttl_days)
    if expires_at <= now:
        raise InvalidRequest("expiresAt must be in the future")
    doc = {
        "id": new_id(),
        "title": payload.title.strip(),
        "description": payload.description,
        "category": payload.category,
        "campus": payload.campus,
        "imageUrl": payload.imageUrl,
        "createdBy": caller.user_id,
        "createdByName": caller.user_name,
        "createdByEmail": caller.email,
        "createdAt": now,
        "expiresAt": expires_at,
        "status": AVAILABLE,
    }
    created = await store.insert(doc)
    logger.info("listing %s created by %s", created["id"], caller.user_id)
    return with_effective_status(created, now)


async def get_listing(store, listing_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    listing = await store.get(listing_id)
    if listing is None:
        raise NotFound("Listing not found")
    return with_effective_status(listing, now)


async def _owned_listing(store, listing_id: str, caller: Identity) -> Dict[str, Any]:
    listing = await store.get(listing_id)
    if listing is None:
        raise NotFound("Listing not found")
    if listing.get("createdBy") != caller.user_id:
        raise Forbidden("Only the listing owner can modify it")
    return listing


async def update_listing(
    store,
    listing_id: str,
    identity: Optional[Identity],
    payload: ListingUpdate,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Owner edit. Identity, creation and claim fields are not editable here;
    ``expiresAt`` may only be extended."""
    caller = require_identity(identity)
    listing = await _owned_listing(store, listing_id, caller)
    fields = payload.model_dump(exclude_unset=True)
    for key in ("title", "description", "category", "campus"):
        if key in fields and fields[key] is None:
            raise InvalidRequest(f"{key} cannot be empty")
    if fields.get("expiresAt") is not None:
        new_expiry = as_utc(fields["expiresAt"])
        current = as_utc(listing.get("expiresAt"))
        if current is not None and new_expiry < current:
            raise InvalidRequest("expiresAt can only be extended")
        fields["expiresAt"] = new_expiry
    elif "expiresAt" in fields:
        fields.pop("expiresAt")
    if not fields:
        return with_effective_status(listing, now)
    updated = await store.update(listing_id, fields)
    if updated is None:
        raise NotFound("Listing not found")
    return with_effective_status(updated, now)


async def delete_listing(store, listing_id: str, identity: Optional[Identity]) -> None:
    caller = require_identity(identity)
    await _owned_listing(store, listing_id, caller)
    if not await store.delete(listing_id):
        raise NotFound("Listing not found")
    logger.info("listing %s deleted by %s", listing_id, caller.user_id)


async def browse_listings(
    store,
    *,
    category: Optional[str] = None,
    campus: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    now = now or utcnow()
    limit = min(max(limit or DEFAULT_LIMIT, 1), MAX_LIMIT)
    docs = await store.find(
        category=category, campus=campus, status=status, search=search or None,
        now=now, skip=max(offset, 0), limit=limit,
    )
    return [with_effective_status(d, now) for d in docs]


async def listing_stats(store, *, user_id: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Counts over every stored listing, or one owner's when ``user_id`` is given."""
    if user_id is not None:
        user_id = _require_user_id(user_id)
    summary = await store.summary(now or utcnow(), created_by=user_id)
    categories = {c: 0 for c in get_args(Category)}
    for key, n in summary["categories"].items():
        categories[key] = categories.get(key, 0) + n
    return {
        "totalListings": summary["total"],
        "activeListings": summary["statuses"][AVAILABLE],
        "claimedListings": summary["statuses"][CLAIMED],
        "expiredListings": summary["statuses"][EXPIRED],
        "categories": categories,
    }


async def owner_listings(store, user_id: Optional[str], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    user_id = _require_user_id(user_id)
    docs = await store.list_by_owner(user_id)
    logger.info("found %s listings for user %s", len(docs), user_id)
    return [with_effective_status(d, now) for d in docs]


async def claimant_claims(claims, listings, user_id: Optional[str], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Claims by ``user_id``, newest first, each joined with its listing (or None)."""
    user_id = _require_user_id(user_id)
    rows = await claims.list_by_claimant(user_id)
    logger.info("found %s claims for user %s", len(rows), user_id)
    if not rows:
        return []
    listing_ids = list(dict.fromkeys(r["listingId"] for r in rows))
    by_id = {l["id"]: with_effective_status(l, now) for l in await listings.get_many(listing_ids)}
    return [{**r, "listing": by_id.get(r["listingId"])} for r in rows]
