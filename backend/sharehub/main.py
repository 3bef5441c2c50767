import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_server_config_from_mongo, load_settings
from .errors import ShareHubError
from .mongo import create_mongo_client, ensure_indexes
from .routers import config as config_router
from .routers import health, listings, maintenance, users
from .stores import MemoryClaimStore, MemoryListingStore

logger = logging.getLogger("uvicorn.error")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
    "Access-Control-Allow-Methods": "GET,POST,PUT,DELETE,OPTIONS",
}


async def apply_server_config(app: FastAPI, mdb) -> None:
    """Overlay Mongo ``config.runtime.server`` and rebuild settings from it.

    Settings passed explicitly to :func:`create_app` are kept as given.
    """
    await load_server_config_from_mongo(mdb)
    if not app.state.settings_pinned:
        app.state.settings = load_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    client = create_mongo_client(settings)
    if client is None:
        logger.info("Database: in-memory stores (MONGODB_URI unset or MONGO_ENABLED=false)")
        yield
        return
    mdb = client[settings.mongodb_db_name]
    try:
        await mdb.command("ping")
    except Exception as e:
        # configured but unreachable: refuse to serve from process memory
        logger.error("MongoDB ping failed: %s", e)
        client.close()
        raise
    # Load server config from Mongo at startup
    try:
        await apply_server_config(app, mdb)
    except Exception as ce:
        logger.warning("Loading server config failed: %s", ce)
    try:
        await ensure_indexes(mdb, app.state.settings)
    except Exception as ie:
        logger.warning("Index creation failed: %s", ie)
    app.state.mongo_db = mdb
    logger.info("Database connected: MongoDB")
    try:
        yield
    finally:
        app.state.mongo_db = None
        client.close()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    app = FastAPI(title="ShareHub API", lifespan=lifespan)
    app.state.settings = settings or load_settings()
    app.state.settings_pinned = settings is not None
    app.state.mongo_db = None
    # Dev fallback when Mongo is not configured; process-local
    app.state.memory_listings = MemoryListingStore()
    app.state.memory_claims = MemoryClaimStore()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Every route answers OPTIONS with 200 and an empty body, preflight or not
    @app.middleware("http")
    async def preflight(request: Request, call_next):
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=CORS_HEADERS)
        return await call_next(request)

    @app.exception_handler(ShareHubError)
    async def sharehub_error(request: Request, exc: ShareHubError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_body())

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("%s %s failed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc), "type": exc.__class__.__name__})

    app.include_router(health.router, prefix="/health", tags=["health"])
    app.include_router(listings.router, prefix="/listings", tags=["listings"])
    app.include_router(users.router, prefix="/users", tags=["users"])
    app.include_router(maintenance.router, prefix="/maintenance", tags=["maintenance"])
    app.include_router(config_router.router, prefix="/config", tags=["config"])

    @app.get("/")
    def read_root():
        return {"message": "ShareHub API is running"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
