"""
Pytest fixtures for the ShareHub API.

Every test gets a fresh app wired to in-memory stores, so no MongoDB is needed.
"""
import pytest
from fastapi.testclient import TestClient
from jose import jwt

from sharehub.config import Settings
from sharehub.deps import get_claim_store, get_listing_store
from sharehub.main import create_app
from sharehub.stores import MemoryClaimStore, MemoryListingStore

from helpers import utc


@pytest.fixture
def settings():
    return Settings(mongodb_uri=None, claim_insert_backoff_seconds=0)


@pytest.fixture
def listing_store():
    return MemoryListingStore()


@pytest.fixture
def claim_store():
    return MemoryClaimStore()


@pytest.fixture
def app(settings, listing_store, claim_store):
    app = create_app(settings)
    app.dependency_overrides[get_listing_store] = lambda: listing_store
    app.dependency_overrides[get_claim_store] = lambda: claim_store
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    """Build an Authorization header carrying an (unsigned-for-our-purposes) identity token."""

    def _auth(sub, name=None, email=None):
        claims = {"sub": sub}
        if name:
            claims["name"] = name
        if email:
            claims["email"] = email
        token = jwt.encode(claims, "not-verified-here", algorithm="HS256")
        return {"Authorization": f"Bearer {token}"}

    return _auth


@pytest.fixture
def seed(listing_store):
    """Put a listing straight into the store, bypassing the API."""

    def _seed(listing_id="L1", **overrides):
        doc = {
            "id": listing_id,
            "title": "Calculus Textbook",
            "description": "Stewart 8th edition, minimal highlighting",
            "category": "books",
            "campus": "Main Campus",
            "imageUrl": None,
            "createdBy": "U1",
            "createdByName": "Jane Smith",
            "createdAt": utc(days=-1),
            "expiresAt": utc(days=7),
            "status": "available",
        }
        doc.update(overrides)
        listing_store.docs[listing_id] = doc
        return doc

    return _seed
