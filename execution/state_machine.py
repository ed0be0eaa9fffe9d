# PATH: execution/state_machine.py
"""
Submission state machine.

SUBMISSION STATE CONTRACT:
==========================

States (SubmissionState):
  PENDING     → submission created
  SIMULATING  → dry-run of executePolicy in progress
  SIM_PASSED  → dry-run succeeded, ready to sign and send
  SIM_FAILED  → dry-run failed, nothing was sent
  SUBMITTING  → signing and broadcasting
  SUBMITTED   → transaction accepted by the node
  CONFIRMING  → waiting for a receipt
  CONFIRMED   → included, ledger logic succeeded
  REVERTED    → included, ledger logic reverted
  FAILED      → broadcast rejected, or no receipt within the bounded wait

Transitions:
  PENDING     → SIMULATING
  SIMULATING  → SIM_PASSED | SIM_FAILED
  SIM_PASSED  → SUBMITTING
  SUBMITTING  → SUBMITTED | FAILED
  SUBMITTED   → CONFIRMING | FAILED
  CONFIRMING  → CONFIRMED | REVERTED | FAILED

==========================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from core.time import now_iso


class SubmissionState(str, Enum):
    """Execution submission states."""
    PENDING = "PENDING"
    SIMULATING = "SIMULATING"
    SIM_PASSED = "SIM_PASSED"
    SIM_FAILED = "SIM_FAILED"
    SUBMITTING = "SUBMITTING"
    SUBMITTED = "SUBMITTED"
    CONFIRMING = "CONFIRMING"
    CONFIRMED = "CONFIRMED"
    REVERTED = "REVERTED"
    FAILED = "FAILED"


VALID_TRANSITIONS: Dict[SubmissionState, List[SubmissionState]] = {
    SubmissionState.PENDING: [SubmissionState.SIMULATING],
    SubmissionState.SIMULATING: [SubmissionState.SIM_PASSED, SubmissionState.SIM_FAILED],
    SubmissionState.SIM_PASSED: [SubmissionState.SUBMITTING],
    SubmissionState.SIM_FAILED: [],  # Terminal state
    SubmissionState.SUBMITTING: [SubmissionState.SUBMITTED, SubmissionState.FAILED],
    SubmissionState.SUBMITTED: [SubmissionState.CONFIRMING, SubmissionState.FAILED],
    SubmissionState.CONFIRMING: [
        SubmissionState.CONFIRMED,
        SubmissionState.REVERTED,
        SubmissionState.FAILED,
    ],
    SubmissionState.CONFIRMED: [],  # Terminal state
    SubmissionState.REVERTED: [],  # Terminal state
    SubmissionState.FAILED: [],  # Terminal state
}


@dataclass
class StateTransition:
    """Record of a state transition."""
    from_state: SubmissionState
    to_state: SubmissionState
    timestamp: str = ""
    reason: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = now_iso()


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""
    pass


@dataclass
class SubmissionStateMachine:
    """
    State machine for one executePolicy submission.

    Tracks current state and transition history.
    """
    policy_id: int
    state: SubmissionState = SubmissionState.PENDING
    history: List[StateTransition] = field(default_factory=list)
    created_at: str = ""

    def __post_init__(self):
        if not self.created_at:
            self.created_at = now_iso()

    def can_transition_to(self, new_state: SubmissionState) -> bool:
        return new_state in VALID_TRANSITIONS.get(self.state, [])

    def transition_to(
        self,
        new_state: SubmissionState,
        reason: str = "",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises InvalidTransitionError if transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidTransitionError(
                f"Cannot transition from {self.state.value} to {new_state.value}. "
                f"Valid transitions: {[s.value for s in VALID_TRANSITIONS.get(self.state, [])]}"
            )

        transition = StateTransition(
            from_state=self.state,
            to_state=new_state,
            reason=reason,
            metadata=metadata or {},
        )

        self.history.append(transition)
        self.state = new_state

        return transition

    @property
    def is_terminal(self) -> bool:
        return len(VALID_TRANSITIONS.get(self.state, [])) == 0

    @property
    def is_success(self) -> bool:
        return self.state == SubmissionState.CONFIRMED

    @property
    def was_broadcast(self) -> bool:
        """True once a signed transaction has been accepted by the node."""
        return any(t.to_state == SubmissionState.SUBMITTED for t in self.history)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "state": self.state.value,
            "is_terminal": self.is_terminal,
            "is_success": self.is_success,
            "created_at": self.created_at,
            "history": [
                {
                    "from_state": t.from_state.value,
                    "to_state": t.to_state.value,
                    "timestamp": t.timestamp,
                    "reason": t.reason,
                    "metadata": t.metadata,
                }
                for t in self.history
            ],
        }
