"""Listing and claim persistence.

Two collections, no cross-document transactions. The Mongo stores are built per
request from the database handle on ``app.state``; the memory stores implement
the same contract for local runs without Mongo and for tests.
"""
import asyncio
import copy
import functools
import logging
import re
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from .errors import PreconditionFailed, StoreFailure
from .services.lifecycle import AVAILABLE, CLAIMED, EXPIRED, as_utc, effective_status, utcnow

logger = logging.getLogger("uvicorn.error")

_DATETIME_FIELDS = ("createdAt", "expiresAt", "claimedAt")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    for k in _DATETIME_FIELDS:
        if k in doc and doc[k] is not None:
            doc[k] = as_utc(doc[k])
    return doc


def _in(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    doc["_id"] = doc.pop("id")
    return doc


def _store_call(fn):
    """Wrap driver errors into StoreFailure, tagged with the driver's error class."""

    @functools.wraps(fn)
    async def inner(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as e:
            logger.exception("store operation %s failed", fn.__name__)
            raise StoreFailure(str(e), kind=e.__class__.__name__) from e

    return inner


def _status_query(status: str, now: datetime) -> Dict[str, Any]:
    """Filter on effective status. Expired is stored as available with expiresAt in the past."""
    if status == CLAIMED:
        return {"status": CLAIMED}
    if status == EXPIRED:
        return {"status": AVAILABLE, "expiresAt": {"$lt": now}}
    # $not also matches listings without an expiry
    return {"status": AVAILABLE, "expiresAt": {"$not": {"$lt": now}}}


def _newest_first(docs: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(docs, key=lambda d: as_utc(d.get("createdAt")) or _EPOCH, reverse=True)


class MongoListingStore:
    def __init__(self, mdb: AsyncIOMotorDatabase, collection: str) -> None:
        self.coll = mdb[collection]

    @_store_call
    async def get(self, listing_id: str) -> Optional[Dict[str, Any]]:
        return _out(await self.coll.find_one({"_id": listing_id}))

    @_store_call
    async def get_many(self, listing_ids: List[str]) -> List[Dict[str, Any]]:
        if not listing_ids:
            return []
        return [_out(d) async for d in self.coll.find({"_id": {"$in": listing_ids}})]

    @_store_call
    async def insert(self, listing: Dict[str, Any]) -> Dict[str, Any]:
        await self.coll.insert_one(_in(listing))
        return dict(listing)

    @_store_call
    async def update(self, listing_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        doc = await self.coll.find_one_and_update(
            {"_id": listing_id},
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )
        return _out(doc)

    @_store_call
    async def delete(self, listing_id: str) -> bool:
        res = await self.coll.delete_one({"_id": listing_id})
        return res.deleted_count == 1

    @_store_call
    async def claim_if_available(self, listing_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Apply the claim fields only while the stored status is still available."""
        doc = await self.coll.find_one_and_update(
            {"_id": listing_id, "status": AVAILABLE},
            {"$set": {**fields, "status": CLAIMED}},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            raise PreconditionFailed(listing_id)
        return _out(doc)

    @_store_call
    async def list_by_owner(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.coll.find({"createdBy": user_id}).sort("createdAt", DESCENDING)
        return [_out(d) async for d in cursor]

    @_store_call
    async def find(
        self,
        *,
        category: Optional[str] = None,
        campus: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        now: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if category:
            query["category"] = category
        if campus:
            query["campus"] = campus
        if status:
            query.update(_status_query(status, now or utcnow()))
        if search:
            pattern = {"$regex": re.escape(search), "$options": "i"}
            query["$or"] = [{"title": pattern}, {"description": pattern}, {"createdByName": pattern}]
        cursor = self.coll.find(query).sort("createdAt", DESCENDING).skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return [_out(d) async for d in cursor]

    @_store_call
    async def summary(self, now: datetime, *, created_by: Optional[str] = None) -> Dict[str, Any]:
        """Listing counts by effective status and by category, optionally for one owner."""
        base: Dict[str, Any] = {"createdBy": created_by} if created_by else {}
        statuses: Dict[str, int] = {}
        for status in (AVAILABLE, CLAIMED, EXPIRED):
            statuses[status] = await self.coll.count_documents({**base, **_status_query(status, now)})
        categories: Dict[str, int] = {}
        pipeline = [{"$match": base}, {"$group": {"_id": "$category", "n": {"$sum": 1}}}]
        async for row in self.coll.aggregate(pipeline):
            key = row["_id"] or "other"
            categories[key] = categories.get(key, 0) + row["n"]
        return {"total": await self.coll.count_documents(base), "statuses": statuses, "categories": categories}

    @_store_call
    async def list_claimed(self) -> List[Dict[str, Any]]:
        return [_out(d) async for d in self.coll.find({"status": CLAIMED})]


class MongoClaimStore:
    def __init__(self, mdb: AsyncIOMotorDatabase, collection: str) -> None:
        self.coll = mdb[collection]

    @_store_call
    async def insert(self, claim: Dict[str, Any]) -> Dict[str, Any]:
        try:
            await self.coll.insert_one(_in(claim))
        except DuplicateKeyError:
            # same claim id already written by an earlier attempt
            logger.info("claim %s already present", claim["id"])
        return dict(claim)

    @_store_call
    async def list_by_claimant(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.coll.find({"userId": user_id}).sort("createdAt", DESCENDING)
        return [_out(d) async for d in cursor]

    @_store_call
    async def list_by_listing(self, listing_id: str) -> List[Dict[str, Any]]:
        return [_out(d) async for d in self.coll.find({"listingId": listing_id})]


class MemoryListingStore:
    """In-process listing store. Each call yields to the loop once, like a real round trip."""

    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Any]] = {}

    async def get(self, listing_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        doc = self.docs.get(listing_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_many(self, listing_ids: List[str]) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return [copy.deepcopy(self.docs[i]) for i in listing_ids if i in self.docs]

    async def insert(self, listing: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        self.docs[listing["id"]] = copy.deepcopy(listing)
        return copy.deepcopy(listing)

    async def update(self, listing_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        doc = self.docs.get(listing_id)
        if doc is None:
            return None
        doc.update(copy.deepcopy(fields))
        return copy.deepcopy(doc)

    async def delete(self, listing_id: str) -> bool:
        await asyncio.sleep(0)
        return self.docs.pop(listing_id, None) is not None

    async def claim_if_available(self, listing_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        # check and set run without yielding, so the guard is atomic on the loop
        doc = self.docs.get(listing_id)
        if doc is None or doc.get("status") != AVAILABLE:
            raise PreconditionFailed(listing_id)
        doc.update(copy.deepcopy(fields))
        doc["status"] = CLAIMED
        return copy.deepcopy(doc)

    async def list_by_owner(self, user_id: str) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return copy.deepcopy(_newest_first(d for d in self.docs.values() if d.get("createdBy") == user_id))

    async def find(
        self,
        *,
        category: Optional[str] = None,
        campus: Optional[str] = None,
        status: Optional[str] = None,
        search: Optional[str] = None,
        now: Optional[datetime] = None,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        now = now or utcnow()
        term = search.lower() if search else None

        def match(d: Dict[str, Any]) -> bool:
            if category and d.get("category") != category:
                return False
            if campus and d.get("campus") != campus:
                return False
            if status and effective_status(d.get("status", AVAILABLE), d.get("expiresAt"), now) != status:
                return False
            if term:
                fields = (d.get("title"), d.get("description"), d.get("createdByName"))
                return any(term in (f or "").lower() for f in fields)
            return True

        docs = _newest_first(d for d in self.docs.values() if match(d))[skip:]
        return copy.deepcopy(docs[:limit] if limit else docs)

    async def summary(self, now: datetime, *, created_by: Optional[str] = None) -> Dict[str, Any]:
        await asyncio.sleep(0)
        docs = [d for d in self.docs.values() if not created_by or d.get("createdBy") == created_by]
        statuses = Counter(effective_status(d.get("status", AVAILABLE), d.get("expiresAt"), now) for d in docs)
        categories = Counter(d.get("category") or "other" for d in docs)
        return {
            "total": len(docs),
            "statuses": {s: statuses[s] for s in (AVAILABLE, CLAIMED, EXPIRED)},
            "categories": dict(categories),
        }

    async def list_claimed(self) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return copy.deepcopy([d for d in self.docs.values() if d.get("status") == CLAIMED])


class MemoryClaimStore:
    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Any]] = {}

    async def insert(self, claim: Dict[str, Any]) -> Dict[str, Any]:
        await asyncio.sleep(0)
        self.docs.setdefault(claim["id"], copy.deepcopy(claim))
        return copy.deepcopy(claim)

    async def list_by_claimant(self, user_id: str) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return copy.deepcopy(_newest_first(d for d in self.docs.values() if d.get("userId") == user_id))

    async def list_by_listing(self, listing_id: str) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        return copy.deepcopy([d for d in self.docs.values() if d.get("listingId") == listing_id])
