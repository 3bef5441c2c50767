from fastapi import APIRouter, Depends

from ..config import get_public_config
from ..mongo import get_mongo_db

router = APIRouter()


# Served with and without the trailing slash so proxies never see a 307
@router.get("")
@router.get("/")
async def read_public_config(mdb=Depends(get_mongo_db)):
    """Client-safe settings: the Mongo ``public`` map overlaid with SHAREHUB_PUBLIC_* env vars."""
    return {"config": await get_public_config(mdb)}
