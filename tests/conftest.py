# PATH: tests/conftest.py
"""
Pytest configuration and fixtures for Sentinel tests.

FakeNode is an in-memory JSON-RPC node served through httpx.MockTransport;
FakeVault answers the vault / ERC-20 eth_calls on top of it.
"""

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio
from eth_abi import encode

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from chains import abi  # noqa: E402
from chains.providers import RPCProvider  # noqa: E402


# Hardhat / anvil default account #0 (public test key)
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_AGENT_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"

VAULT_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
ASSET_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
RECIPIENT_A = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
RECIPIENT_B = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

RPC_URL = "http://node.test:8545"


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


class RPCFault(Exception):
    """Raise from a FakeNode handler to answer with a JSON-RPC error object."""

    def __init__(self, message: str, code: int = -32000, data: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data


class FakeNode:
    """In-memory JSON-RPC node."""

    def __init__(self):
        self.handlers: dict[str, Any] = {}
        self.calls: list[tuple[str, list]] = []

    def on(self, method: str, handler: Any) -> None:
        """Register a static result or a callable(params) -> result."""
        self.handlers[method] = handler

    def methods_called(self) -> list[str]:
        return [m for m, _ in self.calls]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method, params = body["method"], body.get("params", [])
        self.calls.append((method, params))

        envelope: dict[str, Any] = {"jsonrpc": "2.0", "id": body["id"]}
        handler = self.handlers.get(method)
        if handler is None:
            envelope["error"] = {"code": -32601, "message": f"method {method} not found"}
            return httpx.Response(200, json=envelope)

        try:
            envelope["result"] = handler(params) if callable(handler) else handler
        except RPCFault as fault:
            envelope["error"] = {"code": fault.code, "message": fault.message}
            if fault.data is not None:
                envelope["error"]["data"] = fault.data
        return httpx.Response(200, json=envelope)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def _sel(fn: abi.ContractFunction) -> str:
    return "0x" + fn.selector.hex()


def _hex(types: list[str], values: list[Any]) -> str:
    return "0x" + encode(types, values).hex()


@dataclass
class FakePolicy:
    enabled: bool = True
    requires_approval: bool = False
    approved: bool = False
    interval_seconds: int = 86400
    next_execution_time: int = 0
    max_per_execution: int = 100
    executions: int = 0
    last_executed_at: int = 0
    recipients: list[str] = field(default_factory=lambda: [RECIPIENT_A])
    amounts: list[int] = field(default_factory=lambda: [100])
    total: int | None = None  # default: sum(amounts)


@dataclass
class FakeVault:
    """Vault + settlement asset contract state behind eth_call."""
    balance: int = 0
    paused: bool = False
    agent: str = TEST_AGENT_ADDRESS
    policies: list[FakePolicy] = field(default_factory=list)
    execute_revert: str | None = None
    broken_policy_ids: set[int] = field(default_factory=set)

    def eth_call(self, params: list) -> str:
        call = params[0]
        to = call["to"].lower()
        data = call["data"]
        selector, args = data[:10], bytes.fromhex(data[10:])

        if to == ASSET_ADDRESS.lower():
            if selector == _sel(abi.BALANCE_OF):
                return _hex(["uint256"], [self.balance])
            raise RPCFault("execution reverted")

        if selector == _sel(abi.USDC):
            return _hex(["address"], [ASSET_ADDRESS])
        if selector == _sel(abi.PAUSED):
            return _hex(["bool"], [self.paused])
        if selector == _sel(abi.POLICY_COUNT):
            return _hex(["uint256"], [len(self.policies)])
        if selector == _sel(abi.AGENT):
            return _hex(["address"], [self.agent])
        if selector in (_sel(abi.GET_POLICY), _sel(abi.TOTAL_PER_EXECUTION)):
            policy_id = int.from_bytes(args[:32], "big")
            if policy_id in self.broken_policy_ids:
                raise RPCFault("header not found")
            p = self.policies[policy_id]
            if selector == _sel(abi.TOTAL_PER_EXECUTION):
                total = sum(p.amounts) if p.total is None else p.total
                return _hex(["uint256"], [total])
            return _hex(
                list(abi.POLICY_OUTPUT_TYPES),
                [
                    p.enabled, p.requires_approval, p.approved,
                    p.interval_seconds, p.next_execution_time,
                    p.max_per_execution, p.executions, p.last_executed_at,
                    p.recipients, p.amounts,
                ],
            )
        if selector == _sel(abi.EXECUTE_POLICY):
            if self.execute_revert:
                raise RPCFault(
                    "execution reverted",
                    code=3,
                    data="0x08c379a0" + encode(["string"], [self.execute_revert]).hex(),
                )
            return "0x"
        raise RPCFault("execution reverted")


def install_vault(node: FakeNode, vault: FakeVault) -> None:
    node.on("eth_call", vault.eth_call)


def install_wallet_methods(
    node: FakeNode,
    receipt_status: str | None = "0x1",
    chain_id: int = 31337,
) -> None:
    """Handlers for the write path. receipt_status=None: never mined."""
    node.on("eth_chainId", hex(chain_id))
    node.on("eth_estimateGas", hex(80_000))
    node.on("eth_gasPrice", hex(1_000_000_000))
    node.on("eth_getTransactionCount", "0x0")
    node.on("eth_sendRawTransaction", "0x" + "ab" * 32)

    def receipt(params: list) -> dict | None:
        if receipt_status is None:
            return None
        return {
            "transactionHash": params[0],
            "status": receipt_status,
            "gasUsed": hex(61_234),
            "blockNumber": hex(42),
        }

    node.on("eth_getTransactionReceipt", receipt)


@pytest.fixture
def fake_node() -> FakeNode:
    return FakeNode()


@pytest.fixture
def fake_vault(fake_node) -> FakeVault:
    vault = FakeVault()
    install_vault(fake_node, vault)
    return vault


@pytest_asyncio.fixture
async def provider(fake_node):
    rpc = RPCProvider([RPC_URL], timeout_seconds=2, transport=fake_node.transport())
    yield rpc
    await rpc.close()
