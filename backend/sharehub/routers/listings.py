from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response

from ..config import Settings
from ..deps import get_claim_store, get_identity, get_listing_store, get_settings
from ..schemas.claims import ClaimResult
from ..schemas.listings import Category, Listing, ListingCreate, ListingPage, ListingStats, ListingStatus, ListingUpdate
from ..services import listings as listing_service
from ..services.claims import ClaimService
from ..services.identity import Identity
from ..services.notify import notify_listing_claimed

router = APIRouter()


@router.get("", response_model=ListingPage)
async def list_listings(
    category: Optional[Category] = None,
    campus: Optional[str] = None,
    status: Optional[ListingStatus] = None,
    search: Optional[str] = None,
    limit: int = Query(default=listing_service.DEFAULT_LIMIT, ge=1, le=listing_service.MAX_LIMIT),
    offset: int = Query(default=0, ge=0),
    store=Depends(get_listing_store),
):
    items = await listing_service.browse_listings(
        store, category=category, campus=campus, status=status, search=search, limit=limit, offset=offset,
    )
    return {"items": items, "count": len(items)}


@router.post("", response_model=Listing)
async def create_listing(
    payload: ListingCreate,
    identity: Optional[Identity] = Depends(get_identity),
    store=Depends(get_listing_store),
    settings: Settings = Depends(get_settings),
):
    return await listing_service.create_listing(store, identity, payload, ttl_days=settings.default_listing_ttl_days)


@router.get("/stats", response_model=ListingStats)
async def stats(store=Depends(get_listing_store)):
    return await listing_service.listing_stats(store)


@router.get("/{listing_id}", response_model=Listing)
async def get_listing(listing_id: str, store=Depends(get_listing_store)):
    return await listing_service.get_listing(store, listing_id)


@router.put("/{listing_id}", response_model=Listing)
async def update_listing(
    listing_id: str,
    payload: ListingUpdate,
    identity: Optional[Identity] = Depends(get_identity),
    store=Depends(get_listing_store),
):
    return await listing_service.update_listing(store, listing_id, identity, payload)


@router.delete("/{listing_id}", status_code=204)
async def delete_listing(
    listing_id: str,
    identity: Optional[Identity] = Depends(get_identity),
    store=Depends(get_listing_store),
):
    await listing_service.delete_listing(store, listing_id, identity)
    return Response(status_code=204)


@router.post("/{listing_id}/claim", response_model=ClaimResult)
async def claim_listing(
    listing_id: str,
    background: BackgroundTasks,
    identity: Optional[Identity] = Depends(get_identity),
    listings=Depends(get_listing_store),
    claims=Depends(get_claim_store),
    settings: Settings = Depends(get_settings),
):
    service = ClaimService(
        listings,
        claims,
        insert_attempts=settings.claim_insert_attempts,
        backoff_seconds=settings.claim_insert_backoff_seconds,
    )
    outcome = await service.claim(listing_id, identity)
    background.add_task(notify_listing_claimed, settings, outcome.listing, outcome.claim)
    return {
        "message": "Listing claimed successfully",
        "claim": outcome.claim,
        "listing": outcome.listing,
        "claimRecorded": outcome.claim_recorded,
    }
