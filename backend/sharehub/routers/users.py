from fastapi import APIRouter, Depends

from ..deps import get_claim_store, get_listing_store
from ..schemas.claims import ClaimPage
from ..schemas.listings import ListingPage, ListingStats
from ..services import listings as listing_service

router = APIRouter()


@router.get("/{user_id}/listings", response_model=ListingPage)
async def user_listings(user_id: str, store=Depends(get_listing_store)):
    items = await listing_service.owner_listings(store, user_id)
    return {"items": items, "count": len(items)}


@router.get("/{user_id}/claims", response_model=ClaimPage)
async def user_claims(user_id: str, claims=Depends(get_claim_store), listings=Depends(get_listing_store)):
    items = await listing_service.claimant_claims(claims, listings, user_id)
    return {"items": items, "count": len(items)}


@router.get("/{user_id}/stats", response_model=ListingStats)
async def user_stats(user_id: str, store=Depends(get_listing_store)):
    return await listing_service.listing_stats(store, user_id=user_id)
