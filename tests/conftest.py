from typing import List, Tuple

import pytest

from whatsapp_ai.core.config import Settings
from whatsapp_ai.core.lifecycle import SystemLifecycle
from whatsapp_ai.core.models import Contact, IncomingMessage
from whatsapp_ai.core.transport import ChatTransport, TransportEvents


class FakeTransport(ChatTransport):
    """Records every call instead of talking to WhatsApp."""

    def __init__(self, contact: Contact = None) -> None:
        self.contact = contact or Contact(id="5511999990000@c.us", number="5511999990000", name="Ana")
        self.events: TransportEvents = None
        self.started = False
        self.stopped = False
        self.replies: List[Tuple[str, str]] = []
        self.sent: List[Tuple[str, str]] = []
        self.typing: List[str] = []
        self.dispatched: List[dict] = []
        self.fail_replies = False

    async def start(self, events):
        self.events = events
        self.started = True

    async def stop(self):
        self.stopped = True

    async def get_contact(self, message):
        return self.contact

    async def send_typing(self, chat_id):
        self.typing.append(chat_id)

    async def reply(self, message, text):
        if self.fail_replies:
            raise RuntimeError("send failed")
        self.replies.append((message.chat_id, text))

    async def send_text(self, chat_id, text):
        self.sent.append((chat_id, text))

    async def dispatch(self, event):
        self.dispatched.append(event)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        OPENAI_API_KEY="sk-test",
        SUPABASE_URL="https://project.supabase.co",
        SUPABASE_KEY="service-key",
        WHATSAPP_SESSION_PATH=str(tmp_path / "session"),
        WHATSAPP_CLIENT_ID="test-bot",
        WHATSAPP_READY_TIMEOUT=0,
        WAHA_WEBHOOK_HMAC_KEY="",
    )


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def fresh_lifecycle():
    return SystemLifecycle()


def make_message(body="Hi", type="chat", from_me=False):
    return IncomingMessage(
        id="msg_1",
        chat_id="5511999990000@c.us",
        sender="5511999990000@c.us",
        body=body,
        type=type,
        from_me=from_me,
    )
