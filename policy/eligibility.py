"""
policy/eligibility.py - Policy eligibility gates.

evaluate(policy, now, vault) -> Verdict

Gates run in a fixed order and the first failing gate names the skip
reason:

  1. disabled            !enabled
  2. not due             now < next_execution_time   (due time is inclusive)
  3. exceeds cap         total > max_per_execution   (ledger inconsistency)
  4. insufficient funds  total > vault.balance
  5. awaiting approval   requires_approval and not approved
  6. vault paused        vault.paused

Funding gates come before governance gates so an operator sees a funding
problem distinctly from an approval or pause hold.

Pure: no I/O, no clock reads, no logging.
"""

from typing import Callable, Optional

from core.constants import SkipReason
from core.models import PolicySnapshot, VaultSnapshot, Verdict


Gate = Callable[[PolicySnapshot, int, VaultSnapshot], Optional[Verdict]]


# =============================================================================
# INDIVIDUAL GATES
# =============================================================================

def gate_enabled(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if not policy.enabled:
        return Verdict.skip(SkipReason.DISABLED)
    return None


def gate_due(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if now < policy.next_execution_time:
        return Verdict.skip(
            SkipReason.NOT_DUE,
            next_execution_time=policy.next_execution_time,
            now=now,
        )
    return None


def gate_cap(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if policy.total > policy.max_per_execution:
        return Verdict.skip(
            SkipReason.EXCEEDS_CAP,
            total=policy.total,
            max_per_execution=policy.max_per_execution,
        )
    return None


def gate_funds(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if policy.total > vault.balance:
        return Verdict.skip(
            SkipReason.INSUFFICIENT_FUNDS,
            total=policy.total,
            balance=vault.balance,
        )
    return None


def gate_approval(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if policy.requires_approval and not policy.approved:
        return Verdict.skip(SkipReason.AWAITING_APPROVAL)
    return None


def gate_paused(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Optional[Verdict]:
    if vault.paused:
        return Verdict.skip(SkipReason.VAULT_PAUSED)
    return None


# Evaluation order. Do not reorder.
GATES: tuple[Gate, ...] = (
    gate_enabled,
    gate_due,
    gate_cap,
    gate_funds,
    gate_approval,
    gate_paused,
)


def evaluate(policy: PolicySnapshot, now: int, vault: VaultSnapshot) -> Verdict:
    """
    Decide whether a policy should be executed now.

    Args:
        policy: Snapshot read this cycle (with ledger total)
        now: Current time, Unix seconds
        vault: Vault snapshot shared by every policy of the cycle

    Returns:
        Verdict.execute_now() or Verdict.skip(<first failed gate>)
    """
    for gate in GATES:
        verdict = gate(policy, now, vault)
        if verdict is not None:
            return verdict
    return Verdict.execute_now()
