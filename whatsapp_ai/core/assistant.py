"""Multi-step AI agent: a planner decides whether a message needs data from
Supabase, the executor fetches it and a responder writes the reply."""
import json
import logging
from typing import Any, Dict, Optional, Tuple

from openai import AsyncOpenAI
from pydantic import ValidationError

from whatsapp_ai.core.config import Settings, settings as default_settings
from whatsapp_ai.core.models import AIResponse, QueryResult, SupabaseCommand, UserContext
from whatsapp_ai.core.supabase_executor import WRITE_OPERATIONS, SupabaseExecutor

logger = logging.getLogger(__name__)

PLANNER_PROMPT = """You route WhatsApp messages for an assistant backed by a Supabase database.
Answer with a JSON object only:
{"intent": "chat" | "query", "command": null | {
  "operation": "select" | "insert" | "update" | "delete" | "rpc",
  "table": str, "columns": str, "limit": int,
  "filters": [{"column": str, "operator": "eq|neq|gt|gte|lt|lte|like|ilike|in|is", "value": any}],
  "order": {"column": str, "desc": bool},
  "values": object, "function": str, "params": object}}
Use intent "query" only when the user asks for data that lives in the database.
Small talk, greetings and general questions are "chat" with command null."""

RESPONDER_PROMPT = """You are a friendly WhatsApp assistant. Reply in the user's language,
briefly, in plain text suitable for a phone screen. When database results are given,
base the answer on them and never invent records. If the query failed, say the data
could not be retrieved right now."""


class MultiAgentSystem:
    """Sends user messages through planner and responder completions and
    executes planned database commands in between."""

    def __init__(
        self,
        supabase_executor: Optional[SupabaseExecutor],
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.supabase_executor = supabase_executor
        self.client = client or AsyncOpenAI(api_key=self.settings.openai_api_key)
        self.model = self.settings.openai_model
        self.allow_writes = self.settings.ai_allow_writes
        self.is_ready = self.client is not None

    async def _complete(self, system_prompt: str, user_content: str, json_mode: bool = False) -> str:
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            **kwargs,
        )
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def plan(self, message: str, user_context: UserContext) -> Tuple[str, Optional[SupabaseCommand]]:
        """Returns (intent, command). Unusable planner output means chat."""
        raw = await self._complete(
            PLANNER_PROMPT,
            f"User: {user_context.name}\nMessage: {message}",
            json_mode=True,
        )
        try:
            plan = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Planner returned invalid JSON: {raw!r}")
            return "chat", None
        if not isinstance(plan, dict):
            return "chat", None

        intent = plan.get("intent") if plan.get("intent") in ("chat", "query") else "chat"
        if intent != "query" or not plan.get("command"):
            return intent, None
        try:
            return intent, SupabaseCommand.model_validate(plan["command"])
        except ValidationError as e:
            logger.warning(f"Planner produced an invalid command: {e}")
            return "chat", None

    async def run_command(self, command: SupabaseCommand) -> QueryResult:
        if command.operation in WRITE_OPERATIONS and not self.allow_writes:
            logger.warning(f"Blocked {command.operation} on '{command.table}' (AI_ALLOW_WRITES is off)")
            return QueryResult(success=False, error="write operations are disabled")
        if self.supabase_executor is None:
            return QueryResult(success=False, error="database unavailable")
        return await self.supabase_executor.execute(command)

    async def process_message(self, message: str, user_context: UserContext) -> AIResponse:
        """Runs planner, optional database step and responder for one message."""
        logger.info(f"AI Request [{user_context.number}]: {message}")
        intent, command = await self.plan(message, user_context)

        result: Optional[QueryResult] = None
        if command is not None:
            result = await self.run_command(command)
            logger.info(
                f"Command {command.operation} on '{command.table or command.function}': "
                f"success={result.success} count={result.count}"
            )

        prompt = (
            f"User context: {user_context.model_dump_json()}\n"
            f"Message: {message}"
        )
        if result is not None:
            prompt += f"\nDatabase result: {result.model_dump_json()}"

        reply = await self._complete(RESPONDER_PROMPT, prompt)
        logger.info(f"AI Response [{user_context.number}]: {reply}")

        return AIResponse(
            response=reply,
            intent=intent,
            data=result.data if result is not None else None,
            success=result.success if result is not None else True,
            error=result.error if result is not None else None,
        )
