"""
policy/coordinator.py - One observe/decide/act pass over every policy.

CYCLE CONTRACT:
===============
  Idle → Reading → Evaluating(0) → [Executing(0)] → Evaluating(1) → … → Idle

  1. Read the VaultSnapshot once. On failure the whole cycle is aborted.
  2. policy_count == 0 ends the cycle.
  3. For id in [0, policy_count), strictly in order, one at a time:
       read policy + total   (failure: log, next id)
       evaluate              (pure)
       Execute → submit      (success: executed_count += 1)
  4. Back to Idle.

All policies of a cycle are evaluated against the same vault snapshot,
taken before any execution. A later policy may therefore be submitted
against a balance an earlier execution already spent; the ledger
re-checks at apply time and rejects it.

Only one cycle runs at a time. A call made while a cycle is in flight
returns an OVERLAPPED report without touching the ledger or counters.
===============
"""

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from chains.vault import VaultReader
from chains.wallet import AgentWallet
from core.constants import CycleStatus, ExecutionOutcome, SkipReason
from core.exceptions import ReadFailure
from core.logging import get_logger, log_error, log_policy
from core.models import PolicySnapshot, VaultSnapshot, Verdict
from core.time import monotonic_ms, now_ms, now_seconds, seconds_until
from core.units import format_units
from core.validators import same_address
from execution.submitter import ExecutionResult, ExecutionSubmitter
from monitoring.stats import AgentStats
from policy.eligibility import evaluate

logger = get_logger("sentinel.cycle")

# Skip reasons worth an operator's attention
_SKIP_LEVELS = {
    SkipReason.DISABLED: logging.DEBUG,
    SkipReason.NOT_DUE: logging.DEBUG,
    SkipReason.EXCEEDS_CAP: logging.WARNING,
    SkipReason.INSUFFICIENT_FUNDS: logging.WARNING,
    SkipReason.AWAITING_APPROVAL: logging.INFO,
    SkipReason.VAULT_PAUSED: logging.WARNING,
}


@dataclass
class CycleReport:
    """Summary of one cycle."""
    cycle: int
    status: CycleStatus
    started_ms: int = 0
    duration_ms: int = 0
    vault: Optional[VaultSnapshot] = None
    evaluated: int = 0
    read_failures: int = 0
    skipped: Counter = field(default_factory=Counter)
    executions_attempted: int = 0
    executions_succeeded: int = 0
    executions_failed: int = 0
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.status == CycleStatus.ABORTED

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": self.cycle,
            "status": self.status.value,
            "started_ms": self.started_ms,
            "duration_ms": self.duration_ms,
            "vault": self.vault.to_dict() if self.vault else None,
            "evaluated": self.evaluated,
            "read_failures": self.read_failures,
            "skipped": {reason.value: n for reason, n in self.skipped.items()},
            "executions_attempted": self.executions_attempted,
            "executions_succeeded": self.executions_succeeded,
            "executions_failed": self.executions_failed,
            "error": self.error,
        }


class CycleCoordinator:
    """
    Drives policy evaluation and execution, one cycle at a time.
    """

    def __init__(
        self,
        reader: VaultReader,
        submitter: ExecutionSubmitter,
        stats: Optional[AgentStats] = None,
        clock: Callable[[], int] = now_seconds,
        wall_clock_ms: Callable[[], int] = now_ms,
        asset_decimals: int = 6,
    ):
        self.reader = reader
        self.submitter = submitter
        self.stats = stats or AgentStats()
        self.clock = clock
        self.wall_clock_ms = wall_clock_ms
        self.asset_decimals = asset_decimals
        self._guard = asyncio.Lock()
        self._cycle_count = 0

    @property
    def is_running(self) -> bool:
        return self._guard.locked()

    async def run_cycle(self) -> CycleReport:
        """
        Run one full cycle.

        Never raises for ledger read, evaluation or execution problems;
        those are logged and reflected in the report.
        """
        if self._guard.locked():
            logger.warning("Cycle still running, trigger skipped")
            return CycleReport(cycle=self._cycle_count, status=CycleStatus.OVERLAPPED)

        async with self._guard:
            self._cycle_count += 1
            started_ms = self.wall_clock_ms()
            self.stats.mark_run(started_ms)
            t0 = monotonic_ms()

            report = await self._run(self._cycle_count)
            report.started_ms = started_ms
            report.duration_ms = monotonic_ms() - t0

            self.stats.record_cycle(report)
            logger.info(
                f"Cycle {report.cycle} {report.status.value.lower()}",
                extra={"context": report.to_dict()},
            )
            return report

    async def _run(self, cycle: int) -> CycleReport:
        logger.info(f"Starting policy evaluation cycle {cycle}")

        # 1. Observe the vault
        try:
            vault = await self.reader.read_vault_snapshot()
        except ReadFailure as e:
            log_error(
                logger, e.code.value, f"Vault snapshot read failed, cycle aborted: {e.message}",
                phase="read", **e.details,
            )
            return CycleReport(cycle=cycle, status=CycleStatus.ABORTED, error=str(e))

        logger.info(
            f"Found {vault.policy_count} policies",
            extra={"context": {
                "policy_count": vault.policy_count,
                "balance": format_units(vault.balance, self.asset_decimals),
                "paused": vault.paused,
            }},
        )

        report = CycleReport(cycle=cycle, status=CycleStatus.COMPLETED, vault=vault)

        # 2. Nothing to do
        if vault.policy_count == 0:
            logger.info("No policies to execute")
            report.status = CycleStatus.EMPTY
            return report

        # 3. One policy at a time, ascending id
        now = self.clock()
        for policy_id in range(vault.policy_count):
            await self._process_policy(policy_id, now, vault, report)

        return report

    async def _process_policy(
        self,
        policy_id: int,
        now: int,
        vault: VaultSnapshot,
        report: CycleReport,
    ) -> None:
        """Read, evaluate and maybe execute one policy. Never raises."""
        phase = "read"
        try:
            try:
                policy = await self.reader.read_policy(policy_id)
            except ReadFailure as e:
                report.read_failures += 1
                log_error(
                    logger, e.code.value,
                    f"Policy {policy_id}: read failed, not evaluated this cycle: {e.message}",
                    phase=phase, **{"policy_id": policy_id, **e.details},
                )
                return

            phase = "evaluate"
            report.evaluated += 1
            verdict = evaluate(policy, now, vault)
            self._log_verdict(policy, verdict, now, vault)

            if verdict.is_skip:
                report.skipped[verdict.reason] += 1
                return

            phase = "submit"
            report.executions_attempted += 1
            log_policy(
                logger, logging.INFO, policy_id, phase, "ready for execution",
                total=format_units(policy.total, self.asset_decimals),
            )
            result = await self.submitter.submit(policy_id, policy.total)
            self._record_execution(policy, result, report)

        except Exception as e:
            # Isolation: nothing from one policy may end the cycle
            log_error(
                logger, "UNEXPECTED",
                f"Policy {policy_id}: unexpected error: {e}",
                exc_info=True, policy_id=policy_id, phase=phase,
            )
            if phase == "submit":
                self.stats.record_execution_failure()
                report.executions_failed += 1

    def _log_verdict(
        self,
        policy: PolicySnapshot,
        verdict: Verdict,
        now: int,
        vault: VaultSnapshot,
    ) -> None:
        log_policy(
            logger, logging.DEBUG, policy.id, "evaluate", "state",
            enabled=policy.enabled,
            requires_approval=policy.requires_approval,
            approved=policy.approved,
            next_execution_time=policy.next_execution_time,
            due_in_seconds=seconds_until(policy.next_execution_time, now),
            total=format_units(policy.total, self.asset_decimals),
            balance=format_units(vault.balance, self.asset_decimals),
            executions=policy.executions,
        )
        if verdict.is_skip:
            log_policy(
                logger, _SKIP_LEVELS[verdict.reason], policy.id, "evaluate",
                f"skipped ({verdict.reason.value})",
                reason=verdict.reason.value,
                **{k: str(v) for k, v in verdict.details.items()},
            )

    def _record_execution(
        self,
        policy: PolicySnapshot,
        result: ExecutionResult,
        report: CycleReport,
    ) -> None:
        if result.outcome == ExecutionOutcome.SETTLED_SUCCESS:
            self.stats.record_execution()
            report.executions_succeeded += 1
            log_policy(
                logger, logging.INFO, policy.id, "confirm", "executed successfully",
                tx_hash=result.tx_hash,
                total=format_units(policy.total, self.asset_decimals),
                gas_used=result.gas_used,
                block_number=result.block_number,
            )
            return

        self.stats.record_execution_failure()
        report.executions_failed += 1
        error = result.error
        log_error(
            logger,
            error.code.value if error else result.outcome.value,
            f"Policy {policy.id}: execution failed ({result.outcome.value}): "
            f"{error.message if error else result.state.value}",
            policy_id=policy.id,
            phase="confirm" if result.tx_hash else "submit",
            tx_hash=result.tx_hash,
            state=result.state.value,
        )


async def check_agent_authorization(reader: VaultReader, wallet: AgentWallet) -> Optional[bool]:
    """
    Compare the signing key's address with the vault's agent().

    Returns:
        True if authorized, False on mismatch, None if the check could
        not be made. Never raises.
    """
    try:
        authorized = await reader.read_agent()
    except ReadFailure as e:
        log_error(
            logger, e.code.value, f"Failed to verify agent authorization: {e.message}",
            phase="startup",
        )
        return None

    if same_address(authorized, wallet.address):
        logger.info(
            "Agent is authorized",
            extra={"context": {"agent_address": wallet.address}},
        )
        return True

    logger.warning(
        "Agent address mismatch: this wallet may not be authorized to execute policies",
        extra={"context": {"expected": wallet.address, "actual": authorized}},
    )
    logger.warning("Set the agent address in the vault contract using the owner account")
    return False
