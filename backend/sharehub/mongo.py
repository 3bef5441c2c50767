from typing import Optional

from fastapi import Request
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from .config import Settings


def create_mongo_client(settings: Settings) -> Optional[AsyncIOMotorClient]:
    # Allow disabling Mongo for local/dev runs by setting MONGO_ENABLED=false
    if not settings.use_mongo:
        return None
    return AsyncIOMotorClient(settings.mongodb_uri, tz_aware=True)


async def ensure_indexes(mdb: AsyncIOMotorDatabase, settings: Settings) -> None:
    listings = mdb[settings.listings_collection]
    claims = mdb[settings.claims_collection]
    await listings.create_index([("createdBy", ASCENDING), ("createdAt", DESCENDING)], name="createdBy_createdAt")
    await listings.create_index([("status", ASCENDING)], name="status")
    await claims.create_index([("userId", ASCENDING), ("createdAt", DESCENDING)], name="userId_createdAt")
    await claims.create_index([("listingId", ASCENDING)], name="listingId")


async def get_mongo_db(request: Request) -> Optional[AsyncIOMotorDatabase]:
    return getattr(request.app.state, "mongo_db", None)
