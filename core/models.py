# PATH: core/models.py
"""
Core data models for Sentinel.

Policies are owned by the vault contract. The agent only holds transient
per-cycle snapshots of them:

POLICY SNAPSHOT
===============
  id                 stable, sequential, never reused
  enabled            execution gate independent of schedule
  requires_approval  if set, never executed while approved is false
  approved
  interval_seconds   0 = one-shot
  next_execution_time  Unix seconds, inclusive
  max_per_execution  cap on one execution's payout (base units)
  executions         ledger-side counter
  last_executed_at   0 if never
  recipients/amounts paired index-wise, same length, length >= 1
  total              totalPerExecution(id) as reported by the ledger

The ledger's `total` is used as-is and never recomputed locally.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

from core.constants import SkipReason


@dataclass(frozen=True)
class VaultSnapshot:
    """Vault-level state read once per cycle."""
    balance: int
    paused: bool
    policy_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "balance": str(self.balance),
            "paused": self.paused,
            "policy_count": self.policy_count,
        }


@dataclass(frozen=True)
class PolicySnapshot:
    """One policy as read from the ledger, with its ledger-computed total."""
    id: int
    enabled: bool
    requires_approval: bool
    approved: bool
    interval_seconds: int
    next_execution_time: int
    max_per_execution: int
    executions: int
    last_executed_at: int
    recipients: tuple[str, ...]
    amounts: tuple[int, ...]
    total: int

    @property
    def is_one_shot(self) -> bool:
        return self.interval_seconds == 0

    @property
    def local_total(self) -> int:
        """Sum of amounts as computed here (diagnostics only)."""
        return sum(self.amounts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "enabled": self.enabled,
            "requires_approval": self.requires_approval,
            "approved": self.approved,
            "interval_seconds": self.interval_seconds,
            "next_execution_time": self.next_execution_time,
            "max_per_execution": str(self.max_per_execution),
            "executions": self.executions,
            "last_executed_at": self.last_executed_at,
            "recipients": list(self.recipients),
            "amounts": [str(a) for a in self.amounts],
            "total": str(self.total),
        }


@dataclass(frozen=True)
class Verdict:
    """
    Evaluator output.

    execute=True means eligible; otherwise `reason` names the first
    failed check.
    """
    execute: bool
    reason: Optional[SkipReason] = None
    details: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def execute_now(cls) -> "Verdict":
        return cls(execute=True)

    @classmethod
    def skip(cls, reason: SkipReason, **details: Any) -> "Verdict":
        return cls(execute=False, reason=reason, details=details)

    @property
    def is_skip(self) -> bool:
        return not self.execute

    def __str__(self) -> str:
        if self.execute:
            return "Execute"
        return f"Skip({self.reason.value})"
