# PATH: core/exceptions.py
"""
Typed exceptions for Sentinel.

Error taxonomy:
- ConfigError: fatal, aborts startup
- ReadFailure: a ledger read failed (vault-level aborts the cycle,
  policy-level skips that policy)
- SubmissionFailure: an execution request never made it onto the ledger
- LedgerRejection: the request was included but the ledger reverted it
"""

from typing import Any, Optional

from core.constants import ErrorCode


class SentinelError(Exception):
    """Base exception for Sentinel."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "",
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class ConfigError(SentinelError):
    """Invalid or missing configuration."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(
            code=ErrorCode.CONFIG_INVALID,
            message=message,
            details={"errors": errors or []},
        )
        self.errors = errors or []


class InfraError(SentinelError):
    """Infrastructure-related errors (RPC, timeouts)."""
    pass


class RPCError(InfraError):
    """JSON-RPC call failed on every endpoint."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        code: ErrorCode = ErrorCode.INFRA_RPC_ERROR,
    ):
        super().__init__(code=code, message=message, details=details)

    @property
    def is_timeout(self) -> bool:
        return self.code == ErrorCode.INFRA_TIMEOUT

    @property
    def revert_data(self) -> Optional[str]:
        """Revert payload returned by the node, if any."""
        return self.details.get("rpc_data")


class ReadFailure(SentinelError):
    """A read-only ledger query failed or returned an unexpected shape."""
    pass


class SubmissionFailure(SentinelError):
    """Execution request could not be accepted, simulated or confirmed."""
    pass


class LedgerRejection(SentinelError):
    """Transaction was included but the ledger's own logic reverted it."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code=ErrorCode.LEDGER_REVERTED,
            message=message,
            details=details,
        )
