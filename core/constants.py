# PATH: core/constants.py
"""
Constants for Sentinel.

Contains enums, defaults, and configuration constants.
"""

from enum import Enum
from typing import Final

# =============================================================================
# DEFAULTS
# =============================================================================

DEFAULT_HEALTH_PORT: Final = 3001
DEFAULT_HEALTH_HOST: Final = "0.0.0.0"

# Transport
DEFAULT_RPC_TIMEOUT_SECONDS: Final = 10

# Confirmation wait (hard per-submission bound)
DEFAULT_RECEIPT_TIMEOUT_SECONDS: Final = 120
DEFAULT_RECEIPT_POLL_INTERVAL_MS: Final = 1000

# Gas limit = estimate * multiplier
DEFAULT_GAS_LIMIT_MULTIPLIER: Final = 1.2

# Settlement asset (USDC) precision, used for log formatting only
DEFAULT_ASSET_DECIMALS: Final = 6


class SkipReason(str, Enum):
    """
    Reasons a policy is not executed this cycle.

    Order of declaration matches evaluation order.
    """
    DISABLED = "disabled"
    NOT_DUE = "not due"
    EXCEEDS_CAP = "exceeds cap"
    INSUFFICIENT_FUNDS = "insufficient funds"
    AWAITING_APPROVAL = "awaiting approval"
    VAULT_PAUSED = "vault paused"


class ErrorCode(str, Enum):
    """Machine-readable error codes."""

    # Config
    CONFIG_INVALID = "CONFIG_INVALID"
    HEALTH_SERVER_ERROR = "HEALTH_SERVER_ERROR"

    # Reads
    READ_RPC_ERROR = "READ_RPC_ERROR"
    READ_TIMEOUT = "READ_TIMEOUT"
    READ_MALFORMED = "READ_MALFORMED"

    # Transport
    INFRA_RPC_ERROR = "INFRA_RPC_ERROR"
    INFRA_TIMEOUT = "INFRA_TIMEOUT"

    # Submission
    SIM_REVERTED = "SIM_REVERTED"
    SUBMIT_REJECTED = "SUBMIT_REJECTED"
    SUBMIT_NONCE = "SUBMIT_NONCE"
    SUBMIT_RPC_ERROR = "SUBMIT_RPC_ERROR"
    CONFIRM_TIMEOUT = "CONFIRM_TIMEOUT"

    # Ledger-side revert of an included transaction
    LEDGER_REVERTED = "LEDGER_REVERTED"

    UNKNOWN = "UNKNOWN"


class CycleStatus(str, Enum):
    """Terminal status of one coordinator cycle."""
    COMPLETED = "COMPLETED"
    EMPTY = "EMPTY"          # policyCount == 0
    ABORTED = "ABORTED"      # vault snapshot read failed
    OVERLAPPED = "OVERLAPPED"  # another cycle was still running


class ExecutionOutcome(str, Enum):
    """Classification of one execution attempt."""
    SETTLED_SUCCESS = "SETTLED_SUCCESS"
    SETTLED_FAILURE = "SETTLED_FAILURE"
    SUBMISSION_FAILURE = "SUBMISSION_FAILURE"
