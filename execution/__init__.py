# PATH: execution/__init__.py
"""
Sentinel execution layer.

This module contains the execution layer components:
- state_machine: submission state machine with transitions
- simulator: pre-submission dry-run gate
- submitter: executePolicy signer, broadcaster and settlement watcher
"""

from execution.state_machine import (
    SubmissionState,
    SubmissionStateMachine,
    StateTransition,
    InvalidTransitionError,
    VALID_TRANSITIONS,
)
from execution.simulator import (
    SimulationResult,
    SimulationBlocker,
    PreSubmitSimulator,
    decode_revert_reason,
)
from execution.submitter import (
    ExecutionResult,
    ExecutionSubmitter,
    SubmitterConfig,
)

__all__ = [
    # State machine
    "SubmissionState",
    "SubmissionStateMachine",
    "StateTransition",
    "InvalidTransitionError",
    "VALID_TRANSITIONS",
    # Simulator
    "SimulationResult",
    "SimulationBlocker",
    "PreSubmitSimulator",
    "decode_revert_reason",
    # Submitter
    "ExecutionResult",
    "ExecutionSubmitter",
    "SubmitterConfig",
]
