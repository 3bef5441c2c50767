from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Category = Literal["food", "books", "electronics", "furniture", "clothing", "other"]
ListingStatus = Literal["available", "claimed", "expired"]


class ListingBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    category: Category
    campus: str = ""
    imageUrl: Optional[str] = None


class ListingCreate(ListingBase):
    expiresAt: Optional[datetime] = None


class ListingUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[Category] = None
    campus: Optional[str] = None
    imageUrl: Optional[str] = None
    expiresAt: Optional[datetime] = None


class Listing(ListingBase):
    id: str
    createdBy: str
    createdByName: str
    createdAt: datetime
    expiresAt: datetime
    status: ListingStatus
    claimedBy: Optional[str] = None
    claimedByName: Optional[str] = None
    claimedAt: Optional[datetime] = None


class ListingPage(BaseModel):
    items: List[Listing]
    count: int


class ListingStats(BaseModel):
    totalListings: int = 0
    activeListings: int = 0
    claimedListings: int = 0
    expiredListings: int = 0
    categories: dict = {}
