# PATH: execution/simulator.py
"""
Pre-submission simulation gate.

PRE-SUBMISSION SIMULATION CONTRACT:
===================================

Purpose:
  Immediately before signing, dry-run executePolicy(id) as the agent
  against the latest state to catch a revert condition that appeared
  after evaluation, without paying for an irrevocable transaction.

Interface:
  simulate(policy_id) → SimulationResult
    - passed: bool
    - gas_estimate: int
    - blockers: List[str]
    - revert_reason: Optional[str]

Blocking criteria:
  - REVERT_PREDICTED: eth_call or eth_estimateGas reverted
  - RPC_ERROR: the node could not be reached

===================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from chains import abi
from chains.providers import RPCProvider
from core.exceptions import RPCError

# Error(string)
ERROR_STRING_SELECTOR = "0x08c379a0"
# Panic(uint256)
PANIC_SELECTOR = "0x4e487b71"


@dataclass
class SimulationResult:
    """Result of pre-submission simulation."""
    passed: bool
    gas_estimate: int = 0
    blockers: List[str] = field(default_factory=list)
    revert_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "gas_estimate": self.gas_estimate,
            "blockers": self.blockers,
            "revert_reason": self.revert_reason,
            "metadata": self.metadata,
        }


class SimulationBlocker:
    """Standard simulation blocker codes."""
    REVERT_PREDICTED = "REVERT_PREDICTED"
    RPC_ERROR = "RPC_ERROR"


def decode_revert_reason(data: Any) -> Optional[str]:
    """
    Decode revert data returned by a node.

    Handles Error(string) and Panic(uint256); any other payload is
    returned as raw hex (custom errors).
    """
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x") or len(data) < 10:
        return None

    selector, body = data[:10], data[10:]
    try:
        if selector == ERROR_STRING_SELECTOR:
            (reason,) = decode(["string"], bytes.fromhex(body))
            return reason
        if selector == PANIC_SELECTOR:
            (panic_code,) = decode(["uint256"], bytes.fromhex(body))
            return f"Panic(0x{panic_code:02x})"
    except (DecodingError, ValueError):
        return data
    return data


def _is_revert(error: RPCError) -> bool:
    """A JSON-RPC error object (the node answered) vs. a transport failure."""
    return error.details.get("rpc_message") is not None


class PreSubmitSimulator:
    """
    Dry-runs executePolicy as the agent before anything is signed.
    """

    def __init__(self, provider: RPCProvider, vault_address: str, agent_address: str):
        self.provider = provider
        self.vault_address = abi.checksum(vault_address)
        self.agent_address = abi.checksum(agent_address)

    def _failed(self, step: str, error: RPCError) -> SimulationResult:
        if _is_revert(error):
            return SimulationResult(
                passed=False,
                blockers=[SimulationBlocker.REVERT_PREDICTED],
                revert_reason=(
                    decode_revert_reason(error.revert_data)
                    or error.details.get("rpc_message")
                ),
                metadata={"step": step},
            )
        return SimulationResult(
            passed=False,
            blockers=[SimulationBlocker.RPC_ERROR],
            revert_reason=None,
            metadata={"step": step, "error": str(error)},
        )

    async def simulate(self, policy_id: int) -> SimulationResult:
        """
        Simulate executePolicy(policy_id).

        Returns:
            SimulationResult with pass/fail and gas estimate
        """
        data = abi.EXECUTE_POLICY.encode_call(policy_id)

        try:
            await self.provider.eth_call(
                to=self.vault_address,
                data=data,
                from_address=self.agent_address,
            )
        except RPCError as e:
            return self._failed("eth_call", e)

        try:
            gas_estimate = await self.provider.estimate_gas({
                "from": self.agent_address,
                "to": self.vault_address,
                "data": data,
            })
        except RPCError as e:
            return self._failed("eth_estimateGas", e)

        return SimulationResult(passed=True, gas_estimate=gas_estimate)
