from typing import Any, Dict, Optional


class ShareHubError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 400
    code = "ERROR"

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, **self.extra}


class InvalidRequest(ShareHubError):
    code = "INVALID_REQUEST"


class MissingIdentity(ShareHubError):
    code = "MISSING_IDENTITY"

    def __init__(self, message: str = "User ID is required (must be authenticated)") -> None:
        super().__init__(message)


class NotFound(ShareHubError):
    status_code = 404
    code = "NOT_FOUND"


class AlreadyClaimed(ShareHubError):
    code = "ALREADY_CLAIMED"

    def __init__(self, claimed_by: Optional[str]) -> None:
        super().__init__("Listing has already been claimed", claimedBy=claimed_by)
        self.claimed_by = claimed_by


class SelfClaimForbidden(ShareHubError):
    code = "SELF_CLAIM_FORBIDDEN"

    def __init__(self) -> None:
        super().__init__("You cannot claim your own listing")


class Forbidden(ShareHubError):
    status_code = 403
    code = "FORBIDDEN"


class StoreFailure(ShareHubError):
    status_code = 500
    code = "STORE_FAILURE"

    def __init__(self, message: str, kind: str = "StoreFailure") -> None:
        super().__init__(message)
        self.kind = kind

    def to_body(self) -> Dict[str, Any]:
        # opaque: message plus the underlying error class only
        return {"error": self.message, "type": self.kind}


class PreconditionFailed(Exception):
    """A conditional store write found the stored document in another state.

    Never surfaced to clients directly.
    """
