from typing import Any, Dict, Optional

from fastapi import Depends, Request

from .config import Settings
from .mongo import get_mongo_db
from .services.identity import BearerIdentityResolver, Identity
from .stores import MongoClaimStore, MongoListingStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_listing_store(request: Request, mdb=Depends(get_mongo_db), settings: Settings = Depends(get_settings)):
    # Fall back to in-memory if Mongo is not configured
    if mdb is not None:
        return MongoListingStore(mdb, settings.listings_collection)
    return request.app.state.memory_listings


def get_claim_store(request: Request, mdb=Depends(get_mongo_db), settings: Settings = Depends(get_settings)):
    if mdb is not None:
        return MongoClaimStore(mdb, settings.claims_collection)
    return request.app.state.memory_claims


def get_identity_resolver(settings: Settings = Depends(get_settings)) -> BearerIdentityResolver:
    return BearerIdentityResolver(allow_body_fallback=settings.allow_body_identity)


async def read_json_body(request: Request) -> Optional[Dict[str, Any]]:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


async def get_identity(request: Request, resolver=Depends(get_identity_resolver)) -> Optional[Identity]:
    """Resolved caller, or None. Handlers decide when a missing identity is an error."""
    body = await read_json_body(request) if resolver.allow_body_fallback else None
    return resolver.resolve(request.headers, body)
