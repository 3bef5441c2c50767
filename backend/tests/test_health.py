from sharehub.config import Settings
from sharehub.services.notify import claim_message, notify_listing_claimed


def test_health(client):
    assert client.get("/health/").json() == {"status": "ok"}
    assert client.get("/health/db").json() == {"status": "ok", "database": "memory"}


def test_root(client):
    assert client.get("/").json() == {"message": "ShareHub API is running"}


def test_public_config_only_exposes_public_keys(client, monkeypatch):
    monkeypatch.setenv("SHAREHUB_PUBLIC_REGION", "eu-north-1")
    monkeypatch.setenv("SENDGRID_API_KEY", "hidden")
    for path in ("/config", "/config/"):
        cfg = client.get(path).json()["config"]
        assert cfg["SHAREHUB_PUBLIC_REGION"] == "eu-north-1"
        assert "SENDGRID_API_KEY" not in cfg


def test_preflight_on_any_route(client):
    for path in ("/listings", "/listings/L1", "/health/"):
        r = client.options(path, headers={"Origin": "http://localhost:5173", "Access-Control-Request-Method": "POST"})
        assert r.status_code == 200
        assert r.content == b""


def test_cors_header_on_regular_requests(client):
    r = client.get("/health/", headers={"Origin": "http://localhost:5173"})
    assert r.headers["access-control-allow-origin"] == "*"


def test_claim_notification_is_best_effort():
    listing = {"id": "L1", "title": "Desk Lamp", "createdByName": "Jane", "createdByEmail": "jane@uni.edu"}
    claim = {"userName": "Mike"}
    # nothing configured: skipped, no exception
    assert notify_listing_claimed(Settings(), listing, claim) is False
    assert notify_listing_claimed(Settings(), {"id": "L2"}, claim) is False

    msg = claim_message(listing, claim)
    assert "Desk Lamp" in msg["subject"]
    assert "Mike" in msg["text"]
