from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel

from .listings import Listing

ClaimStatus = Literal["pending", "completed", "cancelled"]


class Claim(BaseModel):
    id: str
    listingId: str
    userId: str
    userName: str
    status: ClaimStatus
    createdAt: datetime


class ClaimWithListing(Claim):
    listing: Optional[Listing] = None


class ClaimPage(BaseModel):
    items: List[ClaimWithListing]
    count: int


class ClaimResult(BaseModel):
    message: str = "Listing claimed successfully"
    claim: Claim
    listing: Listing
    claimRecorded: bool = True


class ReconcileResult(BaseModel):
    created: List[Claim]
    count: int
