"""Turns AI results into text that renders well in a WhatsApp chat."""
import re
from typing import Any, Optional

# WhatsApp accepts longer bodies, but long replies are unreadable on a phone.
DEFAULT_MAX_LENGTH = 4000

# `__x__` is bold only away from code, so obj.__init__() or `__init__` stay as written.
_BOLD = re.compile(r"\*\*(.+?)\*\*|(?<![\w.`])__(?=[^\s_])(.+?)(?<=[^\s_])__(?![\w(`])", re.DOTALL)
_STRIKE = re.compile(r"~~(.+?)~~", re.DOTALL)
_HEADING = re.compile(r"^[ \t]{0,3}#{1,6}[ \t]+(.+?)[ \t]*#*[ \t]*$", re.MULTILINE)
_BLANK_LINES = re.compile(r"\n{3,}")


class ResponseFormatter:
    """Stateless; only holds the configured maximum length."""

    def __init__(self, max_length: int = DEFAULT_MAX_LENGTH) -> None:
        self.max_length = max_length

    @staticmethod
    def extract_text(ai_response: Any) -> Optional[str]:
        """Reads the `response` field from whatever the AI handed back."""
        if ai_response is None:
            return None
        if isinstance(ai_response, str):
            return ai_response
        if isinstance(ai_response, dict):
            text = ai_response.get("response")
        else:
            text = getattr(ai_response, "response", None)
        return text if isinstance(text, str) else None

    def format(self, ai_response: Any) -> str:
        text = self.extract_text(ai_response)
        if not text or not text.strip():
            return ""

        text = text.replace("\r\n", "\n")
        text = _BOLD.sub(lambda m: f"*{m.group(1) or m.group(2)}*", text)
        text = _HEADING.sub(lambda m: f"*{m.group(1).strip('*')}*", text)
        text = _STRIKE.sub(lambda m: f"~{m.group(1)}~", text)
        text = _BLANK_LINES.sub("\n\n", text).strip()

        if len(text) > self.max_length:
            text = text[: self.max_length - 1].rstrip() + "…"
        return text
