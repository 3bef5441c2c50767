import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

_SERVER_CONFIG: Dict[str, Any] = {}

PUBLIC_PREFIX = "SHAREHUB_PUBLIC_"


def get_server_secret(key: str, default: Optional[Any] = None) -> Any:
    """Read a server-side setting. Precedence: loaded Mongo config -> environment -> default.
    Do not expose these to clients.
    """
    if key in _SERVER_CONFIG:
        return _SERVER_CONFIG[key]
    return os.getenv(key, default)  # type: ignore[no-any-return]


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


@dataclass
class Settings:
    mongodb_uri: Optional[str] = None
    mongodb_db_name: str = "sharehub"
    mongo_enabled: bool = True
    listings_collection: str = "ShareHub-Listings"
    claims_collection: str = "ShareHub-Claims"
    # Accept userId/userName from the request body when no bearer token is present.
    # Compatibility shim for unauthenticated clients; keep off unless required.
    allow_body_identity: bool = False
    claim_insert_attempts: int = 3
    claim_insert_backoff_seconds: float = 0.05
    default_listing_ttl_days: int = 30
    maintenance_token: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    sendgrid_from: Optional[str] = None

    @property
    def use_mongo(self) -> bool:
        return bool(self.mongodb_uri) and self.mongo_enabled


def load_settings() -> Settings:
    return Settings(
        mongodb_uri=get_server_secret("MONGODB_URI") or None,
        mongodb_db_name=get_server_secret("MONGODB_DB_NAME", "sharehub"),
        mongo_enabled=_as_bool(get_server_secret("MONGO_ENABLED"), default=True),
        listings_collection=get_server_secret("LISTINGS_COLLECTION", "ShareHub-Listings"),
        claims_collection=get_server_secret("CLAIMS_COLLECTION", "ShareHub-Claims"),
        allow_body_identity=_as_bool(get_server_secret("ALLOW_BODY_IDENTITY")),
        claim_insert_attempts=max(1, _as_int(get_server_secret("CLAIM_INSERT_ATTEMPTS"), 3)),
        claim_insert_backoff_seconds=_as_float(get_server_secret("CLAIM_INSERT_BACKOFF_SECONDS"), 0.05),
        default_listing_ttl_days=_as_int(get_server_secret("DEFAULT_LISTING_TTL_DAYS"), 30),
        maintenance_token=get_server_secret("MAINTENANCE_TOKEN") or None,
        sendgrid_api_key=get_server_secret("SENDGRID_API_KEY") or None,
        sendgrid_from=get_server_secret("SENDGRID_FROM") or None,
    )


def _allowlisted_public_from_env() -> Dict[str, Any]:
    """Expose only safe, intentionally public values from env.
    Keys beginning with SHAREHUB_PUBLIC_ are considered safe to ship to clients.
    """
    out: Dict[str, Any] = {}
    for k, v in os.environ.items():
        if k.startswith(PUBLIC_PREFIX):
            out[k] = v
    return out


async def load_server_config_from_mongo(mdb) -> None:
    """Load server config from MongoDB into memory if available.
    The expected document shape (collection: config, id: 'runtime'):
      { _id: 'runtime', server: { KEY: VALUE, ... }, public: { SHAREHUB_PUBLIC_*: VALUE, ... } }
    """
    if mdb is None:
        return
    doc = await mdb.get_collection("config").find_one({"_id": "runtime"})
    if not doc:
        return
    server = doc.get("server") or {}
    if isinstance(server, dict):
        # Mongo values win over env
        _SERVER_CONFIG.update(server)


async def get_public_config(mdb) -> Dict[str, Any]:
    """Return public configuration for clients. Combines Mongo 'public' map and SHAREHUB_PUBLIC_* envs."""
    public: Dict[str, Any] = {}
    if mdb is not None:
        doc = await mdb.get_collection("config").find_one({"_id": "runtime"})
        if doc and isinstance(doc.get("public"), dict):
            public.update(doc["public"])
    # Env wins as an override
    public.update(_allowlisted_public_from_env())
    return public
