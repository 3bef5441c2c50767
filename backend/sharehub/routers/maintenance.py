import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from ..config import Settings
from ..deps import get_claim_store, get_listing_store, get_settings
from ..schemas.claims import ReconcileResult
from ..services.reconcile import reconcile_missing_claims

router = APIRouter()
log = logging.getLogger("uvicorn.error")


def require_maintenance_token(
    x_maintenance_token: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    # Endpoints are hidden entirely unless a token is configured
    if not settings.maintenance_token:
        raise HTTPException(status_code=404, detail="Not Found")
    if not x_maintenance_token or not hmac.compare_digest(x_maintenance_token, settings.maintenance_token):
        raise HTTPException(status_code=403, detail="invalid maintenance token")


@router.post("/reconcile-claims", response_model=ReconcileResult, dependencies=[Depends(require_maintenance_token)])
async def reconcile_claims(listings=Depends(get_listing_store), claims=Depends(get_claim_store)):
    created = await reconcile_missing_claims(listings, claims)
    log.info("reconcile-claims created %s claim rows", len(created))
    return {"created": created, "count": len(created)}
