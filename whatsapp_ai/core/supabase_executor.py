"""Wraps the Supabase client: connectivity test plus execution of the
declarative commands planned by the AI agent."""
import asyncio
import logging
from functools import partial
from typing import Any, Callable, Mapping, Optional, Union

import httpx
from supabase import Client, create_client

from whatsapp_ai.core.config import Settings, settings as default_settings
from whatsapp_ai.core.models import QueryResult, SupabaseCommand

logger = logging.getLogger(__name__)

# Operator name in commands -> method name on the PostgREST query builder.
FILTER_METHODS = {
    "eq": "eq",
    "neq": "neq",
    "gt": "gt",
    "gte": "gte",
    "lt": "lt",
    "lte": "lte",
    "like": "like",
    "ilike": "ilike",
    "in": "in_",
    "is": "is_",
}

WRITE_OPERATIONS = ("insert", "update", "delete")


class SupabaseExecutor:
    """Runs commands against Supabase. The client is synchronous, so every
    call is pushed to the default thread pool to keep the event loop free."""

    def __init__(self, settings: Optional[Settings] = None, client: Optional[Client] = None) -> None:
        self.settings = settings or default_settings
        self.client = client or create_client(self.settings.supabase_url, self.settings.supabase_key)
        self.is_connected = False

    async def _run(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    async def test_connection(self) -> bool:
        """Selects a single row from the health table.

        Any answer from PostgREST, even "relation does not exist", proves the
        project is reachable with our credentials. Only network failures
        count as "not connected".
        """
        table = self.settings.supabase_health_table
        query = self.client.table(table).select("*").limit(1)
        try:
            await self._run(query.execute)
            self.is_connected = True
        except httpx.TransportError as e:
            logger.error(f"Supabase unreachable: {e}")
            self.is_connected = False
        except Exception as e:
            logger.warning(f"Supabase answered the health query on '{table}' with an error: {e}")
            self.is_connected = True

        logger.info(f"Supabase connectivity: {'OK' if self.is_connected else 'FAILED'}")
        return self.is_connected

    async def execute(self, command: Union[SupabaseCommand, Mapping[str, Any]]) -> QueryResult:
        """Validates and runs one command. Failures come back as results."""
        try:
            if not isinstance(command, SupabaseCommand):
                command = SupabaseCommand.model_validate(command)
            request = self._build(command)
        except (ValueError, TypeError) as e:
            logger.warning(f"Rejected Supabase command: {e}")
            return QueryResult(success=False, error=str(e))

        try:
            response = await self._run(request)
        except Exception as e:
            logger.error(f"Supabase {command.operation} failed: {e}", exc_info=True)
            return QueryResult(success=False, error=str(e))

        data = getattr(response, "data", None)
        count = getattr(response, "count", None)
        if count is None and isinstance(data, list):
            count = len(data)
        return QueryResult(success=True, data=data, count=count)

    def _build(self, command: SupabaseCommand) -> Callable[[], Any]:
        """Translates a command into a ready-to-run `execute` callable."""
        if command.operation == "rpc":
            if not command.function:
                raise ValueError("rpc requires a function name")
            return partial(self._execute_rpc, command.function, command.params)

        if not command.table:
            raise ValueError(f"{command.operation} requires a table")
        table = self.client.table(command.table)

        if command.operation == "select":
            query = self._apply_filters(table.select(command.columns), command)
            if command.order:
                query = query.order(command.order.column, desc=command.order.desc)
            if command.limit:
                query = query.limit(command.limit)
            return query.execute

        if command.operation == "insert":
            if not command.values:
                raise ValueError("insert requires values")
            return table.insert(command.values).execute

        if not command.filters:
            # An unfiltered update/delete would hit every row of the table.
            raise ValueError(f"{command.operation} requires at least one filter")

        if command.operation == "update":
            if not command.values or not isinstance(command.values, dict):
                raise ValueError("update requires a single row of values")
            return self._apply_filters(table.update(command.values), command).execute

        return self._apply_filters(table.delete(), command).execute

    def _execute_rpc(self, function: str, params: dict) -> Any:
        return self.client.rpc(function, params).execute()

    @staticmethod
    def _apply_filters(query: Any, command: SupabaseCommand) -> Any:
        for item in command.filters:
            method = FILTER_METHODS.get(item.operator)
            if method is None:
                raise ValueError(f"Unsupported filter operator: {item.operator}")
            if item.operator == "in" and not isinstance(item.value, (list, tuple)):
                raise ValueError(f"Filter 'in' on {item.column} needs a list of values")
            query = getattr(query, method)(item.column, item.value)
        return query
