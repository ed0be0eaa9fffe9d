"""
chains/ - Ledger interaction layer.

Modules:
- providers: JSON-RPC provider with failover
- abi: vault / ERC-20 calldata codec
- vault: read-only vault state reader
- wallet: agent signing credential
"""

from chains.providers import (
    RPCProvider,
    RPCResponse,
    RPCStats,
)
from chains.vault import VaultReader
from chains.wallet import AgentWallet, SignedTransaction

__all__ = [
    # Providers
    "RPCProvider",
    "RPCResponse",
    "RPCStats",
    # Vault
    "VaultReader",
    # Wallet
    "AgentWallet",
    "SignedTransaction",
]
