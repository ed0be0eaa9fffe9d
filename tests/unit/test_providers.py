# PATH: tests/unit/test_providers.py
"""
Tests for RPCProvider failover.

Transport failures move on to the next endpoint; a JSON-RPC error object
is an answer and is raised as-is.
"""

import httpx
import pytest

from chains.providers import RPCProvider, _redact
from core.constants import ErrorCode
from core.exceptions import RPCError

from conftest import FakeNode, RPCFault

PRIMARY = "http://primary.test:8545"
BACKUP = "https://backup.test/v3/secret-key"


def routed(handlers: dict) -> httpx.MockTransport:
    """Dispatch on request host."""
    def handle(request: httpx.Request) -> httpx.Response:
        return handlers[request.url.host](request)
    return httpx.MockTransport(handle)


def refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)


def time_out(request: httpx.Request) -> httpx.Response:
    raise httpx.ReadTimeout("timed out", request=request)


@pytest.mark.asyncio
async def test_call_returns_result(fake_node):
    fake_node.on("eth_blockNumber", "0x2a")
    async with RPCProvider([PRIMARY], transport=fake_node.transport()) as rpc:
        assert await rpc.get_block_number() == 42
        response = await rpc.call("eth_blockNumber")
    assert response.endpoint_used == PRIMARY
    assert fake_node.methods_called() == ["eth_blockNumber", "eth_blockNumber"]


@pytest.mark.asyncio
async def test_failover_on_transport_error():
    node = FakeNode()
    node.on("eth_chainId", "0x7a69")
    transport = routed({"primary.test": refuse, "backup.test": node.handle})

    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        response = await rpc.call("eth_chainId")

        assert response.result == "0x7a69"
        assert response.endpoint_used == BACKUP
        assert rpc.stats[PRIMARY].failed_requests == 1
        assert rpc.stats[BACKUP].successful_requests == 1


@pytest.mark.asyncio
async def test_failover_on_http_status():
    node = FakeNode()
    node.on("eth_chainId", "0x1")

    def unavailable(request):
        return httpx.Response(503, text="upstream down")

    transport = routed({"primary.test": unavailable, "backup.test": node.handle})
    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        assert await rpc.get_chain_id() == 1


@pytest.mark.asyncio
async def test_rpc_error_object_not_failed_over():
    primary, backup = FakeNode(), FakeNode()

    def revert(params):
        raise RPCFault("execution reverted", code=3, data="0x08c379a0")

    primary.on("eth_call", revert)
    backup.on("eth_call", "0x")
    transport = routed({"primary.test": primary.handle, "backup.test": backup.handle})

    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        with pytest.raises(RPCError) as exc_info:
            await rpc.eth_call(to="0x" + "11" * 20, data="0x")

    err = exc_info.value
    assert err.code == ErrorCode.INFRA_RPC_ERROR
    assert err.details["rpc_message"] == "execution reverted"
    assert err.details["rpc_code"] == 3
    assert err.revert_data == "0x08c379a0"
    assert backup.calls == []


@pytest.mark.asyncio
async def test_all_endpoints_down():
    transport = routed({"primary.test": refuse, "backup.test": refuse})
    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        with pytest.raises(RPCError) as exc_info:
            await rpc.call("eth_gasPrice")

    err = exc_info.value
    assert err.code == ErrorCode.INFRA_RPC_ERROR
    assert not err.is_timeout
    assert err.details["endpoints_tried"] == 2
    assert "rpc_message" not in err.details


@pytest.mark.asyncio
async def test_last_failure_timeout_gives_timeout_code():
    transport = routed({"primary.test": refuse, "backup.test": time_out})
    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        with pytest.raises(RPCError) as exc_info:
            await rpc.call("eth_gasPrice")
        assert rpc.stats[BACKUP].last_error.startswith("Timeout")

    assert exc_info.value.code == ErrorCode.INFRA_TIMEOUT
    assert exc_info.value.is_timeout


@pytest.mark.asyncio
async def test_non_json_body_fails_over():
    node = FakeNode()
    node.on("eth_gasPrice", "0x3b9aca00")

    def garbage(request):
        return httpx.Response(200, text="<html>oops</html>")

    transport = routed({"primary.test": garbage, "backup.test": node.handle})
    async with RPCProvider([PRIMARY, BACKUP], transport=transport) as rpc:
        assert await rpc.get_gas_price() == 1_000_000_000


@pytest.mark.asyncio
async def test_no_endpoints():
    rpc = RPCProvider([])
    with pytest.raises(RPCError):
        await rpc.call("eth_chainId")


@pytest.mark.asyncio
async def test_eth_call_from_address(fake_node):
    fake_node.on("eth_call", "0x")
    async with RPCProvider([PRIMARY], transport=fake_node.transport()) as rpc:
        await rpc.eth_call(to="0xto", data="0xdata", from_address="0xfrom")
    method, params = fake_node.calls[0]
    assert params == [{"to": "0xto", "data": "0xdata", "from": "0xfrom"}, "latest"]


@pytest.mark.asyncio
async def test_stats_summary_redacts_urls():
    node = FakeNode()
    node.on("eth_chainId", "0x1")
    transport = routed({"backup.test": node.handle})
    async with RPCProvider([BACKUP], transport=transport) as rpc:
        await rpc.get_chain_id()
        summary = rpc.get_stats_summary()

    assert list(summary) == ["https://backup.test"]
    assert "secret-key" not in str(summary)
    assert summary["https://backup.test"]["success_rate"] == 1.0


@pytest.mark.asyncio
@pytest.mark.parametrize("result", [None, 7, "", "0xzz", {"value": "0x1"}])
@pytest.mark.parametrize("method, call", [
    ("eth_chainId", lambda rpc: rpc.get_chain_id()),
    ("eth_gasPrice", lambda rpc: rpc.get_gas_price()),
    ("eth_getTransactionCount", lambda rpc: rpc.get_transaction_count("0xabc")),
    ("eth_estimateGas", lambda rpc: rpc.estimate_gas({"to": "0xto"})),
])
async def test_malformed_quantity_raises_rpc_error(fake_node, method, call, result):
    fake_node.on(method, lambda params: result)
    async with RPCProvider([PRIMARY], transport=fake_node.transport()) as rpc:
        with pytest.raises(RPCError) as exc_info:
            await call(rpc)

    assert exc_info.value.code == ErrorCode.INFRA_RPC_ERROR
    assert exc_info.value.details["method"] == method
    assert "rpc_message" not in exc_info.value.details


@pytest.mark.asyncio
async def test_pending_receipt_is_none_and_garbage_receipt_raises(fake_node):
    fake_node.on("eth_getTransactionReceipt", lambda params: None)
    async with RPCProvider([PRIMARY], transport=fake_node.transport()) as rpc:
        assert await rpc.get_transaction_receipt("0xhash") is None

        fake_node.on("eth_getTransactionReceipt", lambda params: "0x1")
        with pytest.raises(RPCError):
            await rpc.get_transaction_receipt("0xhash")


def test_redact_keeps_port():
    assert _redact("http://node.test:8545/path?key=abc") == "http://node.test:8545"
