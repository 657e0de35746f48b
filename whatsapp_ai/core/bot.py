"""WhatsApp bot: owns the chat session and dispatches inbound messages to
the AI agent and back to the chat."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from whatsapp_ai.core.assistant import MultiAgentSystem
from whatsapp_ai.core.config import Settings, settings as default_settings
from whatsapp_ai.core.formatter import ResponseFormatter
from whatsapp_ai.core.models import BotStatus, Contact, IncomingMessage, UserContext
from whatsapp_ai.core.transport import ChatTransport, TransportEvents

logger = logging.getLogger(__name__)

TEXT_MESSAGE_TYPE = "chat"
DEFAULT_USER_NAME = "User"

UNSUPPORTED_TYPE_REPLY = "🤖 Sorry, I can only handle text messages for now."
NO_RESPONSE_REPLY = "🤖 Sorry, I couldn't process your message right now."
ERROR_REPLY = "🤖 Sorry, something went wrong while processing your message. Please try again."
AI_UNAVAILABLE_REPLY = "🤖 The AI service is not available. Please try again in a moment."
FORMATTING_ERROR_REPLY = "🤖 Error while formatting the response."
AI_ERROR_REPLY = (
    "🤖 Sorry, I couldn't process your request. "
    "Please check that your message is clear and try again."
)


@dataclass
class ReadyFallbackPolicy:
    """If no readiness signal arrives within `timeout_seconds`, assume the
    session is ready and log a warning. A timeout of 0 disables the policy.

    The transport's ready signal is unreliable, but a forced ready flag can
    be wrong: sends then fail and `send_message` returns False.
    """

    timeout_seconds: float = 45.0

    @property
    def enabled(self) -> bool:
        return self.timeout_seconds > 0

    def arm(self, callback: Callable[[], None]) -> Optional[asyncio.TimerHandle]:
        if not self.enabled:
            return None
        loop = asyncio.get_running_loop()
        return loop.call_later(self.timeout_seconds, callback)


class WhatsAppBot(TransportEvents):
    """Receives transport events and answers text messages with the AI."""

    def __init__(
        self,
        ai_agent: Optional[MultiAgentSystem],
        response_formatter: Optional[ResponseFormatter],
        transport: ChatTransport,
        settings: Optional[Settings] = None,
        ready_policy: Optional[ReadyFallbackPolicy] = None,
    ) -> None:
        settings = settings or default_settings
        self.ai_agent = ai_agent
        self.response_formatter = response_formatter
        self.transport = transport
        self.is_ready = False
        self.session_path = settings.whatsapp_session_path
        self.client_id = settings.whatsapp_client_id
        self.ready_policy = ready_policy or ReadyFallbackPolicy(settings.whatsapp_ready_timeout)
        self._ready_timer: Optional[asyncio.TimerHandle] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Starts the chat session once per process and arms the fallback."""
        if self._initialized:
            logger.info("WhatsApp bot already initialized")
            return
        logger.info(f"Initializing WhatsApp bot (client '{self.client_id}')")
        self._cancel_ready_timer()
        self._initialized = True
        self._ready_timer = self.ready_policy.arm(self._on_ready_timeout)
        try:
            await self.transport.start(self)
        except Exception:
            self._cancel_ready_timer()
            self._initialized = False
            raise

    def _cancel_ready_timer(self) -> None:
        if self._ready_timer is not None:
            self._ready_timer.cancel()
            self._ready_timer = None

    def _on_ready_timeout(self) -> None:
        self._ready_timer = None
        if not self.is_ready:
            self.force_ready()

    def force_ready(self) -> None:
        self.is_ready = True
        logger.warning(
            f"No ready signal after {self.ready_policy.timeout_seconds:g}s, "
            "assuming the WhatsApp session is ready"
        )

    # Transport events

    async def on_paired(self, code: str) -> None:
        logger.info(f"Scan this pairing code with WhatsApp on your phone: {code}")

    async def on_ready(self) -> None:
        self._cancel_ready_timer()
        self.is_ready = True
        logger.info("✅ WhatsApp bot connected and waiting for messages")

    async def on_message(self, message: IncomingMessage) -> None:
        await self.handle_message(message)

    async def on_disconnected(self, reason: str) -> None:
        logger.warning(f"WhatsApp disconnected: {reason}")
        self.is_ready = False

    async def on_auth_failure(self, reason: str) -> None:
        logger.error(f"WhatsApp authentication failed: {reason}")

    # Message handling

    async def handle_message(self, message: IncomingMessage) -> None:
        try:
            if message.from_me:
                logger.debug("Ignoring own message")
                return

            contact = await self.transport.get_contact(message)
            logger.info(
                f"Message from {contact.name or contact.number} ({message.type}): {message.body!r}"
            )

            if message.type != TEXT_MESSAGE_TYPE:
                logger.info(f"Unsupported message type: {message.type}")
                await self.transport.reply(message, UNSUPPORTED_TYPE_REPLY)
                return

            await self.transport.send_typing(message.chat_id)
            response = await self.process_message_with_ai(message.body, contact)

            if response:
                await self.transport.reply(message, response)
                logger.info(f"Reply sent to {contact.name or contact.number}")
            else:
                logger.warning("AI produced no response")
                await self.transport.reply(message, NO_RESPONSE_REPLY)

        except Exception as e:
            logger.error(f"Error while handling message {message.id}: {e}", exc_info=True)
            try:
                await self.transport.reply(message, ERROR_REPLY)
            except Exception as reply_error:
                logger.error(f"Failed to send error reply: {reply_error}")

    async def process_message_with_ai(self, message_text: str, contact: Contact) -> str:
        try:
            user_context = UserContext(
                name=contact.name or DEFAULT_USER_NAME,
                number=contact.number,
            )

            if self.ai_agent is None:
                logger.error("AI agent is not initialized")
                return AI_UNAVAILABLE_REPLY

            ai_response = await self.ai_agent.process_message(message_text, user_context)

            if self.response_formatter is None:
                logger.error("Response formatter is not initialized")
                return ResponseFormatter.extract_text(ai_response) or FORMATTING_ERROR_REPLY

            return self.response_formatter.format(ai_response)

        except Exception as e:
            logger.error(f"AI processing failed: {e}", exc_info=True)
            return AI_ERROR_REPLY

    async def send_message(self, number: str, text: str) -> bool:
        try:
            if not self.is_ready:
                raise RuntimeError("WhatsApp bot is not ready")
            chat_id = number if "@c.us" in number else f"{number}@c.us"
            await self.transport.send_text(chat_id, text)
            return True
        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            return False

    async def destroy(self) -> None:
        self._cancel_ready_timer()
        try:
            await self.transport.stop()
        finally:
            self._initialized = False
            logger.info("WhatsApp bot stopped")

    def get_status(self) -> BotStatus:
        return BotStatus(ready=self.is_ready, client_id=self.client_id, session_path=self.session_path)
