"""Webhook receiving WAHA session and message events."""
import hashlib
import hmac
import json
import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Request, status

router = APIRouter(prefix="/webhook", tags=["WhatsApp"])
logger = logging.getLogger(__name__)


def verify_hmac(body: bytes, signature: str, key: str) -> bool:
    """WAHA signs webhook bodies with HMAC-SHA512 (hex) when a key is set."""
    expected = hmac.new(key.encode("utf-8"), body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature or "")


@router.post("/whatsapp", status_code=status.HTTP_202_ACCEPTED)
async def whatsapp_webhook(request: Request, background_tasks: BackgroundTasks):
    """Accepts an event and hands it to the transport after responding, so
    slow AI calls never hold WAHA's webhook request open."""
    system = getattr(request.app.state, "system", None)
    transport = getattr(system, "transport", None)
    if transport is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Transport not attached")

    body = await request.body()
    hmac_key = system.settings.waha_webhook_hmac_key
    if hmac_key and not verify_hmac(body, request.headers.get("X-Webhook-Hmac", ""), hmac_key):
        logger.warning("Rejected WAHA webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")

    try:
        event = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Invalid JSON payload")
    if not isinstance(event, dict):
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Event must be an object")

    logger.debug(f"WAHA event: {event.get('event')}")
    background_tasks.add_task(transport.dispatch, event)
    return {"status": "accepted"}
