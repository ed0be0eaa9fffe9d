"""
Execution submitter.

EXECUTION CONTRACT:
===================

Interface:
  submit(policy_id, total) → ExecutionResult
    - outcome: SETTLED_SUCCESS | SETTLED_FAILURE | SUBMISSION_FAILURE
    - state: final SubmissionState
    - tx_hash, block_number, gas_used (when known)
    - error: SubmissionFailure | LedgerRejection | None

Steps:
  1. dry-run executePolicy(id) as the agent (failure = SUBMISSION_FAILURE)
  2. nonce (pending), gas price, gas limit = estimate * multiplier
  3. sign locally, eth_sendRawTransaction
  4. poll for the receipt until found or the bounded wait expires
     (expiry = SUBMISSION_FAILURE with CONFIRM_TIMEOUT)
  5. receipt status 1 = SETTLED_SUCCESS, status 0 = SETTLED_FAILURE

submit() never raises for these outcomes; the caller logs and moves on.
===================
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from chains import abi
from chains.providers import RPCProvider
from chains.wallet import AgentWallet
from core.constants import (
    DEFAULT_GAS_LIMIT_MULTIPLIER,
    DEFAULT_RECEIPT_POLL_INTERVAL_MS,
    DEFAULT_RECEIPT_TIMEOUT_SECONDS,
    ErrorCode,
    ExecutionOutcome,
)
from core.exceptions import LedgerRejection, RPCError, SentinelError, SubmissionFailure
from core.logging import get_logger, log_policy
from execution.simulator import PreSubmitSimulator, SimulationBlocker
from execution.state_machine import SubmissionState, SubmissionStateMachine

logger = get_logger(__name__)

# Node replies meaning "this exact transaction is already in the pool"
ALREADY_KNOWN_MARKERS = ("already known", "known transaction")


@dataclass
class SubmitterConfig:
    """Configuration for the execution submitter."""
    receipt_timeout_seconds: float = DEFAULT_RECEIPT_TIMEOUT_SECONDS
    receipt_poll_interval_ms: int = DEFAULT_RECEIPT_POLL_INTERVAL_MS
    gas_limit_multiplier: float = DEFAULT_GAS_LIMIT_MULTIPLIER


@dataclass
class ExecutionResult:
    """Result of one execution attempt."""
    policy_id: int
    outcome: ExecutionOutcome
    state: SubmissionState
    tx_hash: Optional[str] = None
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    error: Optional[SentinelError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_success(self) -> bool:
        return self.outcome == ExecutionOutcome.SETTLED_SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "outcome": self.outcome.value,
            "state": self.state.value,
            "is_success": self.is_success,
            "tx_hash": self.tx_hash,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "error": self.error.to_dict() if self.error else None,
            "metadata": self.metadata,
        }


class ExecutionSubmitter:
    """
    Turns an Execute verdict into a signed executePolicy transaction and
    waits for its settlement.
    """

    def __init__(
        self,
        provider: RPCProvider,
        wallet: AgentWallet,
        vault_address: str,
        config: Optional[SubmitterConfig] = None,
        simulator: Optional[PreSubmitSimulator] = None,
    ):
        self.provider = provider
        self.wallet = wallet
        self.vault_address = abi.checksum(vault_address)
        self.config = config or SubmitterConfig()
        self.simulator = simulator or PreSubmitSimulator(
            provider, self.vault_address, wallet.address
        )
        self._chain_id: Optional[int] = None

    async def _get_chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.provider.get_chain_id()
        return self._chain_id

    def _submission_failure(
        self,
        sm: SubmissionStateMachine,
        terminal: SubmissionState,
        code: ErrorCode,
        message: str,
        tx_hash: Optional[str] = None,
        **details: Any,
    ) -> ExecutionResult:
        sm.transition_to(terminal, reason=message)
        error = SubmissionFailure(
            code=code,
            message=message,
            details={"policy_id": sm.policy_id, **details},
        )
        return ExecutionResult(
            policy_id=sm.policy_id,
            outcome=ExecutionOutcome.SUBMISSION_FAILURE,
            state=sm.state,
            tx_hash=tx_hash,
            error=error,
            metadata={"history": sm.to_dict()["history"]},
        )

    async def submit(self, policy_id: int, total: int) -> ExecutionResult:
        """
        Execute a policy on the ledger.

        Args:
            policy_id: Policy to execute
            total: Ledger-reported payout of one execution (logged only)

        Returns:
            ExecutionResult classifying the attempt
        """
        sm = SubmissionStateMachine(policy_id=policy_id)

        # 1. Dry-run
        sm.transition_to(SubmissionState.SIMULATING)
        sim = await self.simulator.simulate(policy_id)
        if not sim.passed:
            code = (
                ErrorCode.SIM_REVERTED
                if SimulationBlocker.REVERT_PREDICTED in sim.blockers
                else ErrorCode.SUBMIT_RPC_ERROR
            )
            return self._submission_failure(
                sm,
                SubmissionState.SIM_FAILED,
                code,
                f"Dry-run failed: {sim.revert_reason or ', '.join(sim.blockers)}",
                simulation=sim.to_dict(),
            )
        sm.transition_to(SubmissionState.SIM_PASSED, metadata={"gas_estimate": sim.gas_estimate})
        log_policy(
            logger, logging.DEBUG, policy_id, "simulate", "dry-run passed",
            gas_estimate=sim.gas_estimate,
        )

        # 2. Build and sign
        sm.transition_to(SubmissionState.SUBMITTING)
        try:
            chain_id = await self._get_chain_id()
            nonce = await self.provider.get_transaction_count(self.wallet.address, "pending")
            gas_price = await self.provider.get_gas_price()
        except RPCError as e:
            return self._submission_failure(
                sm, SubmissionState.FAILED, ErrorCode.SUBMIT_RPC_ERROR,
                f"Could not prepare transaction: {e.message}",
            )

        tx = {
            "to": self.vault_address,
            "data": abi.EXECUTE_POLICY.encode_call(policy_id),
            "value": 0,
            "gas": math.ceil(sim.gas_estimate * self.config.gas_limit_multiplier),
            "gasPrice": gas_price,
            "nonce": nonce,
            "chainId": chain_id,
        }
        try:
            signed = self.wallet.sign_transaction(tx)
        except (TypeError, ValueError) as e:
            return self._submission_failure(
                sm, SubmissionState.FAILED, ErrorCode.SUBMIT_REJECTED,
                f"Could not sign transaction: {e}",
            )

        # 3. Broadcast
        try:
            tx_hash = await self.provider.send_raw_transaction(signed.raw) or signed.tx_hash
        except RPCError as e:
            rpc_message = (e.details.get("rpc_message") or "").lower()
            if any(marker in rpc_message for marker in ALREADY_KNOWN_MARKERS):
                tx_hash = signed.tx_hash
            else:
                if "nonce" in rpc_message:
                    code = ErrorCode.SUBMIT_NONCE
                elif rpc_message:
                    code = ErrorCode.SUBMIT_REJECTED
                else:
                    code = ErrorCode.SUBMIT_RPC_ERROR
                return self._submission_failure(
                    sm, SubmissionState.FAILED, code,
                    f"Broadcast rejected: {e.message}",
                    nonce=nonce,
                )

        sm.transition_to(SubmissionState.SUBMITTED, metadata={"tx_hash": tx_hash})
        log_policy(
            logger, logging.INFO, policy_id, "submit", "transaction sent",
            tx_hash=tx_hash, nonce=nonce, total=str(total),
        )

        # 4. Confirm
        sm.transition_to(SubmissionState.CONFIRMING)
        receipt = await self._wait_for_receipt(policy_id, tx_hash)
        if receipt is None:
            return self._submission_failure(
                sm, SubmissionState.FAILED, ErrorCode.CONFIRM_TIMEOUT,
                f"No receipt after {self.config.receipt_timeout_seconds}s",
                tx_hash=tx_hash,
            )

        try:
            status = int(receipt.get("status", "0x0"), 16)
            gas_used = int(receipt["gasUsed"], 16) if receipt.get("gasUsed") else None
            block_number = int(receipt["blockNumber"], 16) if receipt.get("blockNumber") else None
        except (TypeError, ValueError) as e:
            return self._submission_failure(
                sm, SubmissionState.FAILED, ErrorCode.SUBMIT_RPC_ERROR,
                f"Malformed receipt: {e}",
                tx_hash=tx_hash,
            )

        if status == 1:
            sm.transition_to(SubmissionState.CONFIRMED)
            return ExecutionResult(
                policy_id=policy_id,
                outcome=ExecutionOutcome.SETTLED_SUCCESS,
                state=sm.state,
                tx_hash=tx_hash,
                block_number=block_number,
                gas_used=gas_used,
                metadata={"history": sm.to_dict()["history"]},
            )

        sm.transition_to(SubmissionState.REVERTED)
        return ExecutionResult(
            policy_id=policy_id,
            outcome=ExecutionOutcome.SETTLED_FAILURE,
            state=sm.state,
            tx_hash=tx_hash,
            block_number=block_number,
            gas_used=gas_used,
            error=LedgerRejection(
                "executePolicy reverted on-chain",
                details={"policy_id": policy_id, "tx_hash": tx_hash},
            ),
            metadata={"history": sm.to_dict()["history"]},
        )

    async def _wait_for_receipt(self, policy_id: int, tx_hash: str) -> Optional[dict]:
        """
        Poll for a receipt until found or the bounded wait expires.

        Transport errors while polling are not fatal; the transaction is
        already broadcast, so polling continues until the deadline.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.receipt_timeout_seconds
        interval = self.config.receipt_poll_interval_ms / 1000

        while True:
            try:
                receipt = await self.provider.get_transaction_receipt(tx_hash)
            except RPCError as e:
                log_policy(
                    logger, logging.DEBUG, policy_id, "confirm", "receipt poll failed",
                    tx_hash=tx_hash, error=str(e),
                )
                receipt = None

            if receipt:
                return receipt
            if loop.time() + interval > deadline:
                return None
            await asyncio.sleep(interval)
