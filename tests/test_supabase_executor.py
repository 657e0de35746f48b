from unittest.mock import MagicMock

import httpx
import pytest
from postgrest import SyncPostgrestClient

from whatsapp_ai.core.models import SupabaseCommand
from whatsapp_ai.core.supabase_executor import SupabaseExecutor


def health_query(client):
    return client.table.return_value.select.return_value.limit.return_value


@pytest.mark.asyncio
async def test_connection_ok(settings):
    client = MagicMock()
    health_query(client).execute.return_value = MagicMock(data=[], count=None)
    executor = SupabaseExecutor(settings, client=client)

    assert executor.is_connected is False
    assert await executor.test_connection() is True
    assert executor.is_connected is True
    client.table.assert_called_with("health_check")


@pytest.mark.asyncio
async def test_connection_counts_api_errors_as_reachable(settings):
    client = MagicMock()
    health_query(client).execute.side_effect = Exception('relation "health_check" does not exist')
    executor = SupabaseExecutor(settings, client=client)

    assert await executor.test_connection() is True


@pytest.mark.asyncio
async def test_connection_network_failure(settings):
    client = MagicMock()
    health_query(client).execute.side_effect = httpx.ConnectError("connection refused")
    executor = SupabaseExecutor(settings, client=client)

    assert await executor.test_connection() is False
    assert executor.is_connected is False


@pytest.mark.asyncio
async def test_select_applies_filters_order_and_limit(settings):
    client = MagicMock()
    select = client.table.return_value.select.return_value
    eq = select.eq.return_value
    gte = eq.gte.return_value
    ordered = gte.order.return_value
    ordered.limit.return_value.execute.return_value = MagicMock(data=[{"id": 1}, {"id": 2}], count=None)
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute({
        "operation": "select",
        "table": "orders",
        "columns": "id,total",
        "filters": [
            {"column": "status", "operator": "eq", "value": "open"},
            {"column": "total", "operator": "gte", "value": 100},
        ],
        "order": {"column": "created_at", "desc": True},
        "limit": 5,
    })

    assert result.success is True
    assert result.data == [{"id": 1}, {"id": 2}]
    assert result.count == 2
    client.table.assert_called_with("orders")
    client.table.return_value.select.assert_called_with("id,total")
    select.eq.assert_called_with("status", "open")
    eq.gte.assert_called_with("total", 100)
    gte.order.assert_called_with("created_at", desc=True)
    ordered.limit.assert_called_with(5)


@pytest.mark.asyncio
async def test_in_operator_maps_to_in_(settings):
    client = MagicMock()
    select = client.table.return_value.select.return_value
    select.in_.return_value.execute.return_value = MagicMock(data=[], count=0)
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute(SupabaseCommand(
        operation="select",
        table="orders",
        filters=[{"column": "id", "operator": "in", "value": [1, 2]}],
    ))

    assert result.success is True
    assert result.count == 0
    select.in_.assert_called_with("id", [1, 2])


@pytest.mark.asyncio
async def test_in_operator_with_scalar_value_is_rejected(settings):
    builder = SyncPostgrestClient("http://postgrest.test")
    client = MagicMock()
    client.table.side_effect = builder.from_
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute({
        "operation": "select",
        "table": "orders",
        "filters": [{"column": "id", "operator": "in", "value": 5}],
    })

    assert result.success is False
    assert "list" in result.error


@pytest.mark.asyncio
async def test_builder_type_errors_become_failed_results(settings):
    client = MagicMock()
    client.table.return_value.select.return_value.eq.side_effect = TypeError("unsupported value")
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute({
        "operation": "select",
        "table": "orders",
        "filters": [{"column": "id", "value": 1}],
    })

    assert result.success is False
    assert "unsupported value" in result.error


@pytest.mark.asyncio
async def test_unfiltered_delete_is_rejected(settings):
    client = MagicMock()
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute({"operation": "delete", "table": "orders"})

    assert result.success is False
    assert "filter" in result.error
    client.table.return_value.delete.assert_not_called()


@pytest.mark.asyncio
async def test_unknown_operator_and_operation_are_rejected(settings):
    client = MagicMock()
    executor = SupabaseExecutor(settings, client=client)

    bad_operator = await executor.execute({
        "operation": "select",
        "table": "orders",
        "filters": [{"column": "id", "operator": "regex", "value": "x"}],
    })
    bad_operation = await executor.execute({"operation": "truncate", "table": "orders"})

    assert bad_operator.success is False
    assert "regex" in bad_operator.error
    assert bad_operation.success is False


@pytest.mark.asyncio
async def test_update_and_rpc(settings):
    client = MagicMock()
    update = client.table.return_value.update.return_value
    update.eq.return_value.execute.return_value = MagicMock(data=[{"id": 7, "status": "done"}], count=None)
    client.rpc.return_value.execute.return_value = MagicMock(data=3, count=None)
    executor = SupabaseExecutor(settings, client=client)

    updated = await executor.execute({
        "operation": "update",
        "table": "orders",
        "values": {"status": "done"},
        "filters": [{"column": "id", "value": 7}],
    })
    counted = await executor.execute({"operation": "rpc", "function": "count_open_orders", "params": {"days": 7}})

    assert updated.success is True
    client.table.return_value.update.assert_called_with({"status": "done"})
    update.eq.assert_called_with("id", 7)
    assert counted.success is True
    assert counted.data == 3
    client.rpc.assert_called_with("count_open_orders", {"days": 7})


@pytest.mark.asyncio
async def test_client_errors_become_failed_results(settings):
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("duplicate key")
    executor = SupabaseExecutor(settings, client=client)

    result = await executor.execute({"operation": "insert", "table": "orders", "values": {"id": 1}})

    assert result.success is False
    assert "duplicate key" in result.error
