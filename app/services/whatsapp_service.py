import logging

import httpx

from app.config import settings
from app.exceptions import DependencyError

logger = logging.getLogger(__name__)

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


def _format_number(number: str) -> str:
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


def send_whatsapp(to: str, body: str) -> bool:
    """Send a WhatsApp message through the Twilio REST API."""
    if not settings.ENABLE_WHATSAPP_NOTIFICATIONS:
        logger.debug("WhatsApp disabled, not sending to %s", to)
        return False
    if not settings.TWILIO_ACCOUNT_SID or not settings.TWILIO_AUTH_TOKEN:
        logger.warning("Twilio credentials not configured")
        return False
    if not to:
        return False

    url = TWILIO_MESSAGES_URL.format(sid=settings.TWILIO_ACCOUNT_SID)
    data = {
        "From": _format_number(settings.TWILIO_WHATSAPP_NUMBER),
        "To": _format_number(to),
        "Body": body,
    }
    try:
        with httpx.Client(timeout=10.0) as client:
            resp = client.post(url, data=data, auth=(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN))
            resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.error("WhatsApp send to %s failed: %s", to, e)
        raise DependencyError("WhatsApp delivery failed") from e

    logger.info("WhatsApp message sent to %s", to)
    return True
