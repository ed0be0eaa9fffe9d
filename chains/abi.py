"""
chains/abi.py - Calldata and return-data codec for the treasury vault.

VAULT INTERFACE:
================
  policyCount()                 -> uint256
  getPolicy(uint256 id)         -> (bool enabled, bool requiresApproval,
                                    bool approved, uint256 intervalSeconds,
                                    uint256 nextExecutionTime,
                                    uint256 maxPerExecution,
                                    uint256 executions,
                                    uint256 lastExecutedAt,
                                    address[] recipients,
                                    uint256[] amounts)
  totalPerExecution(uint256 id) -> uint256
  paused()                      -> bool
  usdc()                        -> address   (settlement asset)
  agent()                       -> address   (authorized executor)
  executePolicy(uint256 id)                  (state-changing)

ERC-20:
  balanceOf(address)            -> uint256
================
"""

from typing import Any, Sequence

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from core.exceptions import ReadFailure
from core.constants import ErrorCode


POLICY_OUTPUT_TYPES: tuple[str, ...] = (
    "bool",
    "bool",
    "bool",
    "uint256",
    "uint256",
    "uint256",
    "uint256",
    "uint256",
    "address[]",
    "uint256[]",
)


class ContractFunction:
    """One ABI function: signature, argument types and return types."""

    def __init__(self, name: str, inputs: Sequence[str] = (), outputs: Sequence[str] = ()):
        self.name = name
        self.inputs = tuple(inputs)
        self.outputs = tuple(outputs)
        self.signature = f"{name}({','.join(self.inputs)})"
        self.selector = function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> str:
        """Build 0x-prefixed calldata."""
        if len(args) != len(self.inputs):
            raise ValueError(
                f"{self.signature} takes {len(self.inputs)} argument(s), got {len(args)}"
            )
        body = encode(list(self.inputs), list(args)) if self.inputs else b""
        return "0x" + (self.selector + body).hex()

    def decode_result(self, data: str | None) -> tuple:
        """
        Decode return data.

        Raises:
            ReadFailure: empty or malformed return data
        """
        if not data or data == "0x":
            raise ReadFailure(
                code=ErrorCode.READ_MALFORMED,
                message=f"{self.name}: empty return data",
                details={"call": self.signature},
            )
        try:
            raw = bytes.fromhex(data[2:] if data.startswith("0x") else data)
            return tuple(decode(list(self.outputs), raw))
        except (DecodingError, ValueError, TypeError) as e:
            raise ReadFailure(
                code=ErrorCode.READ_MALFORMED,
                message=f"{self.name}: cannot decode return data: {e}",
                details={"call": self.signature},
            ) from e

    def __repr__(self) -> str:
        return f"ContractFunction({self.signature!r})"


# Vault
POLICY_COUNT = ContractFunction("policyCount", outputs=["uint256"])
GET_POLICY = ContractFunction("getPolicy", inputs=["uint256"], outputs=POLICY_OUTPUT_TYPES)
TOTAL_PER_EXECUTION = ContractFunction("totalPerExecution", inputs=["uint256"], outputs=["uint256"])
PAUSED = ContractFunction("paused", outputs=["bool"])
USDC = ContractFunction("usdc", outputs=["address"])
AGENT = ContractFunction("agent", outputs=["address"])
EXECUTE_POLICY = ContractFunction("executePolicy", inputs=["uint256"])

# ERC-20
BALANCE_OF = ContractFunction("balanceOf", inputs=["address"], outputs=["uint256"])


def checksum(address: str) -> str:
    return to_checksum_address(address)
