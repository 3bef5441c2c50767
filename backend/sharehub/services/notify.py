import logging
from typing import Any, Dict, Optional

from ..config import Settings

log = logging.getLogger("uvicorn.error")


# --- SendGrid Email ---
def sendgrid_enabled(settings: Settings) -> bool:
    return bool(settings.sendgrid_api_key and settings.sendgrid_from)


def send_email_sync(settings: Settings, to: str, subject: str, content_text: Optional[str] = None, content_html: Optional[str] = None) -> None:
    if not sendgrid_enabled(settings):
        raise RuntimeError("SendGrid not configured: set SENDGRID_API_KEY and SENDGRID_FROM")
    from sendgrid import SendGridAPIClient  # type: ignore
    from sendgrid.helpers.mail import Content, Email, Mail, To  # type: ignore

    # prefer HTML if provided
    if content_html:
        content = Content("text/html", content_html)
    else:
        content = Content("text/plain", content_text or "")

    mail = Mail(Email(settings.sendgrid_from), To(to), subject, content)
    SendGridAPIClient(settings.sendgrid_api_key).send(mail)


def claim_message(listing: Dict[str, Any], claim: Dict[str, Any]) -> Dict[str, str]:
    owner = listing.get("createdByName") or "there"
    title = listing.get("title") or "your listing"
    claimer = claim.get("userName") or "Someone"
    text = (
        f"Hi {owner},\n\n"
        f"{claimer} has claimed your listing \"{title}\" on ShareHub.\n"
        "Please get in touch with them to arrange pickup.\n"
    )
    html = (
        f"<p>Hi {owner},</p>"
        f"<p><b>{claimer}</b> has claimed your listing <b>{title}</b> on ShareHub.</p>"
        "<p>Please get in touch with them to arrange pickup.</p>"
    )
    return {"subject": f"Your listing \"{title}\" has been claimed", "text": text, "html": html}


def notify_listing_claimed(settings: Settings, listing: Dict[str, Any], claim: Dict[str, Any]) -> bool:
    """Best-effort owner notification. Never raises."""
    to = listing.get("createdByEmail")
    if not to:
        log.info("claim notification skipped: listing %s has no owner email", listing.get("id"))
        return False
    if not sendgrid_enabled(settings):
        log.warning("claim notification skipped: SendGrid not configured")
        return False
    msg = claim_message(listing, claim)
    try:
        # sync on purpose: BackgroundTasks runs plain functions in the threadpool
        send_email_sync(settings, to, msg["subject"], msg["text"], msg["html"])
    except Exception as e:
        log.warning("claim notification for listing %s failed (%s: %s)", listing.get("id"), e.__class__.__name__, e)
        return False
    log.info("claim notification sent for listing %s to %s***", listing.get("id"), to[:2])
    return True
