"""
core - Core utilities and models for Sentinel.

This package contains:
- models.py: Data models (PolicySnapshot, VaultSnapshot, Verdict)
- constants.py: Enums and defaults
- exceptions.py: Typed exceptions with error codes
- units.py: Base-unit formatting (no float)
- time.py: Clock helpers
- validators.py: Settings format checks
- logging.py: Structured JSON logging
"""

from core.constants import (
    CycleStatus,
    ErrorCode,
    ExecutionOutcome,
    SkipReason,
)
from core.exceptions import (
    ConfigError,
    InfraError,
    LedgerRejection,
    ReadFailure,
    RPCError,
    SentinelError,
    SubmissionFailure,
)
from core.logging import get_logger, setup_logging
from core.models import (
    PolicySnapshot,
    VaultSnapshot,
    Verdict,
)

__all__ = [
    # Constants
    "CycleStatus",
    "ErrorCode",
    "ExecutionOutcome",
    "SkipReason",
    # Exceptions
    "ConfigError",
    "InfraError",
    "LedgerRejection",
    "ReadFailure",
    "RPCError",
    "SentinelError",
    "SubmissionFailure",
    # Models
    "PolicySnapshot",
    "VaultSnapshot",
    "Verdict",
    # Logging
    "get_logger",
    "setup_logging",
]
