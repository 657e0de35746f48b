"""Data model of the WhatsApp AI bridge: inbound chat messages, per-message
user context, AI results, Supabase commands and the HTTP status payloads."""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Contact(BaseModel):
    """Sender of a chat message as reported by the transport."""

    id: str
    number: str = ""
    name: Optional[str] = None


class IncomingMessage(BaseModel):
    """Transport-neutral inbound chat message; type "chat" is plain text."""

    id: str = ""
    chat_id: str
    sender: str = ""
    body: str = ""
    type: str = "chat"
    from_me: bool = False
    has_media: bool = False
    timestamp: Optional[int] = None


class UserContext(BaseModel):
    """Built once per message and discarded after the dispatch."""

    name: str
    number: str = ""
    timestamp: str = Field(default_factory=utc_now_iso)


class AIResponse(BaseModel):
    """Result of the AI agent. Consumers only rely on `response`."""

    response: str = ""
    intent: str = "chat"
    data: Optional[Any] = None
    success: bool = True
    error: Optional[str] = None


class BotStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ready: bool
    client_id: str = Field(alias="clientId")
    session_path: str = Field(alias="sessionPath")


class QueryFilter(BaseModel):
    column: str
    operator: str = "eq"
    value: Any = None


class QueryOrder(BaseModel):
    column: str
    desc: bool = False


class SupabaseCommand(BaseModel):
    """Declarative database command, produced by the planner agent."""

    operation: Literal["select", "insert", "update", "delete", "rpc"]
    table: Optional[str] = None
    columns: str = "*"
    filters: List[QueryFilter] = Field(default_factory=list)
    values: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None
    order: Optional[QueryOrder] = None
    limit: Optional[int] = None
    function: Optional[str] = None
    params: Dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    success: bool
    data: Optional[Any] = None
    count: Optional[int] = None
    error: Optional[str] = None


class RootStatus(BaseModel):
    status: str = "running"
    message: str = "WhatsApp + AI + Supabase System"
    timestamp: str = Field(default_factory=utc_now_iso)


class HealthStatus(BaseModel):
    status: str = "healthy"
    whatsapp: bool = False
    supabase: bool = False
    ai: bool = False
