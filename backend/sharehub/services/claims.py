"""The claim transaction.

Moves a listing from ``available`` to ``claimed`` and records a ``pending`` claim
row for the caller. The store has no cross-document transactions, so the two
writes are ordered: the listing update goes first and is guarded by a
conditional write on its stored status; the claim insert follows and is retried
a bounded number of times. A listing left claimed without a claim row is
repaired later by :func:`sharehub.services.reconcile.reconcile_missing_claims`.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from ..errors import (
    AlreadyClaimed,
    InvalidRequest,
    NotFound,
    PreconditionFailed,
    SelfClaimForbidden,
    StoreFailure,
)
from .identity import Identity, require_identity
from .lifecycle import CLAIMED, utcnow, with_effective_status

logger = logging.getLogger("uvicorn.error")

PENDING = "pending"


def new_id() -> str:
    return str(uuid.uuid4())


def claim_id_for(listing_id: str) -> str:
    """The one claim row a listing can have. Derived from the listing id so a
    retried insert and a reconciliation insert land on the same row."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"sharehub:claim:{listing_id}"))


@dataclass
class ClaimOutcome:
    claim: Dict[str, Any]
    listing: Dict[str, Any]
    claim_recorded: bool = True


class ClaimService:
    def __init__(
        self,
        listings,
        claims,
        *,
        insert_attempts: int = 3,
        backoff_seconds: float = 0.05,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.listings = listings
        self.claims = claims
        self.insert_attempts = max(1, insert_attempts)
        self.backoff_seconds = backoff_seconds
        self.clock = clock

    async def claim(self, listing_id: Optional[str], identity: Optional[Identity]) -> ClaimOutcome:
        listing_id = (listing_id or "").strip()
        if not listing_id:
            raise InvalidRequest("Listing ID is required")
        caller = require_identity(identity)

        logger.info("claim attempt listing=%s user=%s", listing_id, caller.user_id)
        listing = await self.listings.get(listing_id)
        if listing is None:
            raise NotFound("Listing not found")
        if listing.get("status") == CLAIMED and listing.get("claimedBy"):
            raise AlreadyClaimed(listing["claimedBy"])
        if listing.get("createdBy") == caller.user_id:
            raise SelfClaimForbidden()

        now = self.clock()
        try:
            updated = await self.listings.claim_if_available(
                listing_id,
                {"claimedBy": caller.user_id, "claimedByName": caller.user_name, "claimedAt": now},
            )
        except PreconditionFailed:
            # another request claimed it between our read and our write
            winner = await self.listings.get(listing_id)
            claimed_by = winner.get("claimedBy") if winner else None
            logger.warning("claim lost conditional write listing=%s user=%s winner=%s", listing_id, caller.user_id, claimed_by)
            if winner is None:
                raise NotFound("Listing not found")
            raise AlreadyClaimed(claimed_by)

        claim = {
            "id": claim_id_for(listing_id),
            "listingId": listing_id,
            "userId": caller.user_id,
            "userName": caller.user_name,
            "status": PENDING,
            "createdAt": now,
        }
        recorded = await self._insert_claim(claim)
        logger.info("listing %s claimed by %s (claim=%s recorded=%s)", listing_id, caller.user_id, claim["id"], recorded)
        return ClaimOutcome(claim=claim, listing=with_effective_status(updated, now), claim_recorded=recorded)

    async def _insert_claim(self, claim: Dict[str, Any]) -> bool:
        for attempt in range(1, self.insert_attempts + 1):
            try:
                await self.claims.insert(claim)
                return True
            except StoreFailure as e:
                logger.warning(
                    "claim insert failed attempt=%s/%s claim=%s: %s",
                    attempt, self.insert_attempts, claim["id"], e.message,
                )
                if attempt < self.insert_attempts and self.backoff_seconds > 0:
                    await asyncio.sleep(self.backoff_seconds * attempt)
        logger.warning(
            "claim_record_missing listing=%s claim=%s user=%s; reconciliation required",
            claim["listingId"], claim["id"], claim["userId"],
        )
        return False
