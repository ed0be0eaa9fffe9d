"""
chains/wallet.py - Signing credential of the automation agent.

The private key is the one mutable shared resource of the agent. It is
held only here and never logged or rendered by repr().
"""

from dataclasses import dataclass
from typing import Any

from eth_account import Account
from eth_utils import to_hex


@dataclass(frozen=True)
class SignedTransaction:
    raw: str       # 0x-prefixed RLP, ready for eth_sendRawTransaction
    tx_hash: str   # 0x-prefixed


class AgentWallet:
    """Local signer for legacy (type 0) transactions."""

    def __init__(self, private_key: str):
        self._account = Account.from_key(private_key)

    @property
    def address(self) -> str:
        """Checksummed address derived from the private key."""
        return self._account.address

    def sign_transaction(self, tx: dict[str, Any]) -> SignedTransaction:
        """
        Sign a transaction dict.

        Expected keys: to, data, value, gas, gasPrice, nonce, chainId.
        """
        signed = self._account.sign_transaction(tx)
        return SignedTransaction(
            raw=to_hex(signed.raw_transaction),
            tx_hash=to_hex(signed.hash),
        )

    def __repr__(self) -> str:
        return f"AgentWallet(address={self.address})"
