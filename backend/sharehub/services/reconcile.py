import logging
from typing import Any, Dict, List

from .claims import PENDING, claim_id_for

logger = logging.getLogger("uvicorn.error")


async def reconcile_missing_claims(listings, claims) -> List[Dict[str, Any]]:
    """Recreate claim rows for listings stored as claimed that no claim references.

    The recreated row takes the claimant and timestamp recorded on the listing.
    It shares its id with the row the claim request writes, so a claim insert
    still in flight collapses into it instead of adding a second row.
    """
    created: List[Dict[str, Any]] = []
    for listing in await listings.list_claimed():
        if not listing.get("claimedBy"):
            logger.warning("listing %s is claimed without claimedBy; skipped", listing["id"])
            continue
        if await claims.list_by_listing(listing["id"]):
            continue
        claim = {
            "id": claim_id_for(listing["id"]),
            "listingId": listing["id"],
            "userId": listing["claimedBy"],
            "userName": listing.get("claimedByName") or listing["claimedBy"],
            "status": PENDING,
            "createdAt": listing.get("claimedAt") or listing.get("createdAt"),
        }
        await claims.insert(claim)
        logger.info("reconciled missing claim %s for listing %s", claim["id"], listing["id"])
        created.append(claim)
    return created
