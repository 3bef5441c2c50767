"""Caller identity from the inbound request.

The bearer token is issued by the external identity provider. Only its payload
is decoded here; signature verification is not this service's job.
"""
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from jose import JWTError, jwt

from ..errors import MissingIdentity

log = logging.getLogger("uvicorn.error")

UNKNOWN_USER = "Unknown User"


@dataclass(frozen=True)
class Identity:
    user_id: str
    user_name: str
    email: Optional[str] = None


class BearerIdentityResolver:
    def __init__(self, allow_body_fallback: bool = False) -> None:
        self.allow_body_fallback = allow_body_fallback

    def resolve(self, headers: Mapping[str, str], body: Optional[Mapping[str, Any]] = None) -> Optional[Identity]:
        identity = self._from_token(headers.get("authorization") or headers.get("Authorization"))
        if identity is None and self.allow_body_fallback:
            identity = self._from_body(body)
        return identity

    def _from_token(self, header: Optional[str]) -> Optional[Identity]:
        if not header or not header.startswith("Bearer "):
            return None
        token = header[len("Bearer "):].strip()
        try:
            claims = jwt.get_unverified_claims(token)
        except JWTError as e:
            log.warning("bearer token payload could not be decoded: %s", e)
            return None
        sub = claims.get("sub")
        if not isinstance(sub, str) or not sub.strip():
            return None
        email = claims.get("email") if isinstance(claims.get("email"), str) else None
        name = claims.get("name") or email or UNKNOWN_USER
        return Identity(user_id=sub, user_name=str(name), email=email)

    @staticmethod
    def _from_body(body: Optional[Mapping[str, Any]]) -> Optional[Identity]:
        if not isinstance(body, Mapping):
            return None
        user_id = body.get("userId")
        if not isinstance(user_id, str) or not user_id.strip():
            return None
        return Identity(user_id=user_id, user_name=str(body.get("userName") or UNKNOWN_USER))


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise MissingIdentity()
    return identity
