"""Chat transport contract and its WAHA implementation.

WAHA (WhatsApp HTTP API) runs WhatsApp Web for us and reports session
changes and inbound messages through a webhook. The bot never talks to
WAHA directly; it only sees the `TransportEvents` callbacks and the
`ChatTransport` methods, so tests can swap in a fake transport.
"""
import abc
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from whatsapp_ai.core.config import Settings, settings as default_settings
from whatsapp_ai.core.models import Contact, IncomingMessage

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = ["message", "session.status"]


class TransportEvents(abc.ABC):
    """Callbacks a transport fires while the chat session is alive."""

    @abc.abstractmethod
    async def on_paired(self, code: str) -> None:
        """A pairing (QR) code must be scanned on the phone."""

    @abc.abstractmethod
    async def on_ready(self) -> None:
        """The session is usable."""

    @abc.abstractmethod
    async def on_message(self, message: IncomingMessage) -> None:
        """An inbound chat message arrived."""

    @abc.abstractmethod
    async def on_disconnected(self, reason: str) -> None:
        """The session went away after having been ready."""

    @abc.abstractmethod
    async def on_auth_failure(self, reason: str) -> None:
        """The session could not authenticate."""


class ChatTransport(abc.ABC):
    """Operations the bot needs from a chat session."""

    @abc.abstractmethod
    async def start(self, events: TransportEvents) -> None: ...

    @abc.abstractmethod
    async def stop(self) -> None: ...

    @abc.abstractmethod
    async def get_contact(self, message: IncomingMessage) -> Contact: ...

    @abc.abstractmethod
    async def send_typing(self, chat_id: str) -> None: ...

    @abc.abstractmethod
    async def reply(self, message: IncomingMessage, text: str) -> None: ...

    @abc.abstractmethod
    async def send_text(self, chat_id: str, text: str) -> None: ...

    @abc.abstractmethod
    async def dispatch(self, event: Dict[str, Any]) -> None:
        """Handles one event pushed to the webhook."""


class WahaTransportError(Exception):
    """WAHA answered with an error or could not be reached."""


def parse_message(payload: Dict[str, Any]) -> IncomingMessage:
    """Builds an IncomingMessage from the payload of a WAHA `message` event."""
    raw = payload.get("_data") or {}
    msg_type = raw.get("type")
    if not msg_type:
        msg_type = "media" if payload.get("hasMedia") else "chat"
    chat_id = payload.get("from", "")
    return IncomingMessage(
        id=payload.get("id", ""),
        chat_id=chat_id,
        sender=payload.get("participant") or chat_id,
        body=payload.get("body") or "",
        type=msg_type,
        from_me=bool(payload.get("fromMe")),
        has_media=bool(payload.get("hasMedia")),
        timestamp=payload.get("timestamp"),
    )


class WahaTransport(ChatTransport):
    """Drives one WAHA session named after the configured client id."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings or default_settings
        self.session = self.settings.whatsapp_client_id
        self.session_dir = Path(self.settings.whatsapp_session_path) / self.session
        headers = {"X-Api-Key": self.settings.waha_api_key} if self.settings.waha_api_key else {}
        self.client = client or httpx.AsyncClient(
            base_url=self.settings.waha_url, headers=headers, timeout=30.0
        )
        self.events: Optional[TransportEvents] = None
        self.status: Optional[str] = None

    async def _request(self, method: str, path: str, allow_missing: bool = False, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise WahaTransportError(f"WAHA request {method} {path} failed: {e}") from e
        if response.status_code >= 400 and not (allow_missing and response.status_code == 404):
            raise WahaTransportError(
                f"WAHA {method} {path} returned {response.status_code}: {response.text}"
            )
        return response

    def _session_config(self) -> Dict[str, Any]:
        return {"webhooks": [{"url": self.settings.whatsapp_webhook_url, "events": WEBHOOK_EVENTS}]}

    async def start(self, events: TransportEvents) -> None:
        """Creates or starts the WAHA session and replays its current status."""
        self.events = events
        self.session_dir.mkdir(parents=True, exist_ok=True)

        response = await self._request("GET", f"/api/sessions/{self.session}", allow_missing=True)
        if response.status_code == 404:
            logger.info(f"Creating WAHA session '{self.session}'")
            await self._request(
                "POST",
                "/api/sessions",
                json={"name": self.session, "start": True, "config": self._session_config()},
            )
        else:
            current = response.json().get("status")
            if current in (None, "STOPPED", "FAILED"):
                logger.info(f"Starting WAHA session '{self.session}' (was {current})")
                await self._request(
                    "PUT", f"/api/sessions/{self.session}", json={"config": self._session_config()}
                )
                await self._request("POST", f"/api/sessions/{self.session}/start")

        # Events emitted before our webhook listener was up are lost; poll once.
        response = await self._request("GET", f"/api/sessions/{self.session}", allow_missing=True)
        if response.status_code != 404:
            await self.handle_status(response.json().get("status"))

    async def stop(self) -> None:
        try:
            await self._request("POST", f"/api/sessions/{self.session}/stop")
        finally:
            await self.client.aclose()
            self.events = None

    async def dispatch(self, event: Dict[str, Any]) -> None:
        """Entry point for webhook payloads."""
        if self.events is None:
            logger.warning("Dropping WAHA event: transport not started")
            return
        if event.get("session") not in (None, self.session):
            logger.debug(f"Ignoring event for foreign session {event.get('session')}")
            return

        kind = event.get("event")
        payload = event.get("payload") or {}
        try:
            if kind == "message":
                await self.events.on_message(parse_message(payload))
            elif kind == "session.status":
                await self.handle_status(payload.get("status"))
            else:
                logger.debug(f"Ignoring WAHA event '{kind}'")
        except Exception as e:
            # Called from a webhook background task, so nothing above us logs it.
            logger.error(f"Error handling WAHA event '{kind}': {e}", exc_info=True)

    async def handle_status(self, status: Optional[str]) -> None:
        previous, self.status = self.status, status
        if status == previous or self.events is None:
            return
        logger.info(f"WAHA session '{self.session}' status: {previous} -> {status}")

        if status == "SCAN_QR_CODE":
            code = await self.fetch_pairing_code()
            if code:
                await self.events.on_paired(code)
        elif status == "WORKING":
            await self.events.on_ready()
        elif status == "FAILED":
            await self.events.on_auth_failure(f"session {self.session} failed")
        elif status == "STOPPED" and previous == "WORKING":
            await self.events.on_disconnected(f"session {self.session} stopped")

    async def fetch_pairing_code(self) -> Optional[str]:
        response = await self._request(
            "GET", f"/api/{self.session}/auth/qr", allow_missing=True, params={"format": "raw"}
        )
        if response.status_code == 404:
            return None
        code = response.json().get("value")
        if code:
            # Headless hosts can render the code from this file.
            (self.session_dir / "qr.txt").write_text(code, encoding="utf-8")
        return code

    async def get_contact(self, message: IncomingMessage) -> Contact:
        response = await self._request(
            "GET", "/api/contacts", allow_missing=True, params={"contactId": message.sender, "session": self.session}
        )
        data = response.json() if response.status_code != 404 else {}
        number = data.get("number") or message.sender.split("@", 1)[0]
        return Contact(
            id=data.get("id") or message.sender,
            number=number,
            name=data.get("name") or data.get("pushname"),
        )

    async def send_typing(self, chat_id: str) -> None:
        await self._request("POST", "/api/startTyping", json={"chatId": chat_id, "session": self.session})

    async def reply(self, message: IncomingMessage, text: str) -> None:
        await self._request(
            "POST",
            "/api/sendText",
            json={"chatId": message.chat_id, "text": text, "reply_to": message.id, "session": self.session},
        )

    async def send_text(self, chat_id: str, text: str) -> None:
        await self._request("POST", "/api/sendText", json={"chatId": chat_id, "text": text, "session": self.session})
