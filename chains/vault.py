"""
chains/vault.py - Read-only view of the treasury vault.

VaultReader produces:
- VaultSnapshot: settlement-asset balance held by the vault, pause flag,
  policy count
- PolicySnapshot: all policy fields plus the ledger's totalPerExecution
- the vault's configured agent address

Every failure (transport error, timeout, malformed return data) surfaces
as ReadFailure. Nothing is retried here; the caller decides whether the
failure aborts the cycle or skips one policy.
"""

from typing import Any

from chains import abi
from chains.abi import ContractFunction
from chains.providers import RPCProvider
from core.constants import ErrorCode
from core.exceptions import ReadFailure, RPCError
from core.logging import get_logger
from core.models import PolicySnapshot, VaultSnapshot

logger = get_logger(__name__)


class VaultReader:
    """State reader for one vault contract."""

    def __init__(self, provider: RPCProvider, vault_address: str):
        self.provider = provider
        self.vault_address = abi.checksum(vault_address)
        self._asset_address: str | None = None

    async def _call(
        self,
        fn: ContractFunction,
        *args: Any,
        to: str | None = None,
        policy_id: int | None = None,
    ) -> tuple:
        """eth_call + decode, mapping every failure to ReadFailure."""
        details: dict[str, Any] = {"call": fn.signature}
        if policy_id is not None:
            details["policy_id"] = policy_id

        try:
            response = await self.provider.eth_call(
                to=to or self.vault_address,
                data=fn.encode_call(*args),
            )
        except RPCError as e:
            raise ReadFailure(
                code=ErrorCode.READ_TIMEOUT if e.is_timeout else ErrorCode.READ_RPC_ERROR,
                message=f"{fn.name} failed: {e.message}",
                details={**details, **e.details},
            ) from e

        result = response.result
        if not isinstance(result, str):
            raise ReadFailure(
                code=ErrorCode.READ_MALFORMED,
                message=f"{fn.name}: unexpected result type {type(result).__name__}",
                details=details,
            )
        try:
            return fn.decode_result(result)
        except ReadFailure as e:
            e.details.update(details)
            raise

    async def asset_address(self) -> str:
        """Settlement asset (ERC-20) held by the vault. Cached after first read."""
        if self._asset_address is None:
            (address,) = await self._call(abi.USDC)
            self._asset_address = abi.checksum(address)
            logger.debug(
                "Settlement asset resolved",
                extra={"context": {"asset": self._asset_address}},
            )
        return self._asset_address

    async def read_balance(self) -> int:
        asset = await self.asset_address()
        (balance,) = await self._call(abi.BALANCE_OF, self.vault_address, to=asset)
        return int(balance)

    async def read_paused(self) -> bool:
        (paused,) = await self._call(abi.PAUSED)
        return bool(paused)

    async def read_policy_count(self) -> int:
        (count,) = await self._call(abi.POLICY_COUNT)
        return int(count)

    async def read_agent(self) -> str:
        (agent,) = await self._call(abi.AGENT)
        return abi.checksum(agent)

    async def read_vault_snapshot(self) -> VaultSnapshot:
        """
        Read balance, pause flag and policy count.

        Raises:
            ReadFailure: any of the three reads failed
        """
        balance = await self.read_balance()
        paused = await self.read_paused()
        policy_count = await self.read_policy_count()
        return VaultSnapshot(balance=balance, paused=paused, policy_count=policy_count)

    async def read_policy(self, policy_id: int) -> PolicySnapshot:
        """
        Read one policy and its ledger-computed total.

        Raises:
            ReadFailure: read failed or the policy has an unexpected shape
        """
        (
            enabled,
            requires_approval,
            approved,
            interval_seconds,
            next_execution_time,
            max_per_execution,
            executions,
            last_executed_at,
            recipients,
            amounts,
        ) = await self._call(abi.GET_POLICY, policy_id, policy_id=policy_id)

        if len(recipients) != len(amounts):
            raise ReadFailure(
                code=ErrorCode.READ_MALFORMED,
                message="recipients/amounts length mismatch",
                details={
                    "policy_id": policy_id,
                    "recipients": len(recipients),
                    "amounts": len(amounts),
                },
            )

        (total,) = await self._call(abi.TOTAL_PER_EXECUTION, policy_id, policy_id=policy_id)

        return PolicySnapshot(
            id=policy_id,
            enabled=bool(enabled),
            requires_approval=bool(requires_approval),
            approved=bool(approved),
            interval_seconds=int(interval_seconds),
            next_execution_time=int(next_execution_time),
            max_per_execution=int(max_per_execution),
            executions=int(executions),
            last_executed_at=int(last_executed_at),
            recipients=tuple(abi.checksum(r) for r in recipients),
            amounts=tuple(int(a) for a in amounts),
            total=int(total),
        )
