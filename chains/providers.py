"""
chains/providers.py - JSON-RPC provider with failover.

Provides reliable ledger access with:
- Multiple endpoint failover (transport failures only)
- Request timeout handling
- Connection pooling
- Latency tracking per endpoint

A JSON-RPC error object is an answer from the node (revert, bad nonce,
underpriced fee...). It is raised immediately instead of being retried
against the next endpoint.
"""

import time
from dataclasses import dataclass
from typing import Any

import httpx

from core.constants import DEFAULT_RPC_TIMEOUT_SECONDS, ErrorCode
from core.exceptions import RPCError
from core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None
    last_success_ts: int | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


def _malformed(method: str, result: Any, expected: str) -> RPCError:
    return RPCError(
        f"{method}: expected {expected}, got {result!r}",
        details={"method": method, "result": repr(result)[:200]},
    )


def _quantity(response: RPCResponse, method: str) -> int:
    """Decode a hex QUANTITY result; anything else is an RPC error."""
    result = response.result
    if not isinstance(result, str):
        raise _malformed(method, result, "hex quantity")
    try:
        return int(result, 16)
    except ValueError:
        raise _malformed(method, result, "hex quantity") from None


def _redact(url: str) -> str:
    """Strip path/query (API keys usually live there) for logs."""
    parsed = httpx.URL(url)
    return f"{parsed.scheme}://{parsed.host}" + (f":{parsed.port}" if parsed.port else "")


class RPCProvider:
    """
    RPC provider with failover support.

    Tries endpoints in order until one answers.
    Tracks statistics per endpoint for monitoring.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout_seconds: float = DEFAULT_RPC_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.rpc_urls = list(rpc_urls)
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._request_id = 0

        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RPCProvider":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call with failover.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPCResponse with result and metadata

        Raises:
            RPCError: JSON-RPC error object returned, or all endpoints failed
                (code INFRA_TIMEOUT when the last failure was a timeout)
        """
        if not self.rpc_urls:
            raise RPCError(
                "No RPC endpoints configured",
                details={"method": method},
            )

        client = await self._get_client()
        last_error: Exception | None = None
        last_was_timeout = False

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1

            payload = {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._next_request_id(),
            }

            start_ms = int(time.time() * 1000)

            try:
                resp = await client.post(url, json=payload)
                latency_ms = int(time.time() * 1000) - start_ms
                resp.raise_for_status()
                result = resp.json()

            except httpx.TimeoutException as e:
                latency_ms = int(time.time() * 1000) - start_ms
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_error = e
                last_was_timeout = True
                logger.debug(
                    f"RPC timeout for {_redact(url)}",
                    extra={"context": {"method": method, "latency_ms": latency_ms}},
                )
                continue

            except (httpx.HTTPError, ValueError) as e:
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_error = e
                last_was_timeout = False
                logger.debug(
                    f"RPC failed for {_redact(url)}: {e}",
                    extra={"context": {"method": method}},
                )
                continue

            if not isinstance(result, dict):
                stats.failed_requests += 1
                stats.last_error = "Malformed JSON-RPC envelope"
                last_error = ValueError(stats.last_error)
                last_was_timeout = False
                continue

            if "error" in result:
                error = result["error"] or {}
                if not isinstance(error, dict):
                    error = {"message": str(error)}
                error_msg = error.get("message", str(error))
                # The node answered; count the endpoint as healthy
                stats.successful_requests += 1
                stats.total_latency_ms += latency_ms
                raise RPCError(
                    f"RPC error: {error_msg}",
                    details={
                        "endpoint": _redact(url),
                        "method": method,
                        "rpc_code": error.get("code"),
                        "rpc_message": error_msg,
                        "rpc_data": error.get("data"),
                    },
                )

            stats.successful_requests += 1
            stats.total_latency_ms += latency_ms
            stats.last_success_ts = int(time.time() * 1000)

            return RPCResponse(
                result=result.get("result"),
                latency_ms=latency_ms,
                endpoint_used=url,
            )

        raise RPCError(
            f"All RPC endpoints failed for {method}",
            details={
                "method": method,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": str(last_error),
            },
            code=ErrorCode.INFRA_TIMEOUT if last_was_timeout else ErrorCode.INFRA_RPC_ERROR,
        )

    async def get_chain_id(self) -> int:
        """Get chain ID from RPC."""
        response = await self.call("eth_chainId")
        return _quantity(response, "eth_chainId")

    async def get_block_number(self) -> int:
        response = await self.call("eth_blockNumber")
        return _quantity(response, "eth_blockNumber")

    async def eth_call(
        self,
        to: str,
        data: str,
        block: str = "latest",
        from_address: str | None = None,
    ) -> RPCResponse:
        """
        Make eth_call.

        Args:
            to: Contract address
            data: Encoded call data (0x-prefixed hex)
            block: Block number or "latest"
            from_address: Caller to simulate as (msg.sender)

        Returns:
            RPCResponse with call result
        """
        call: dict[str, str] = {"to": to, "data": data}
        if from_address:
            call["from"] = from_address
        return await self.call("eth_call", [call, block])

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        response = await self.call("eth_estimateGas", [tx])
        return _quantity(response, "eth_estimateGas")

    async def get_gas_price(self) -> int:
        """Get current gas price in wei."""
        response = await self.call("eth_gasPrice")
        return _quantity(response, "eth_gasPrice")

    async def get_transaction_count(self, address: str, block: str = "pending") -> int:
        response = await self.call("eth_getTransactionCount", [address, block])
        return _quantity(response, "eth_getTransactionCount")

    async def send_raw_transaction(self, raw_tx: str) -> str | None:
        """Broadcast a signed transaction; returns the transaction hash, if the node echoes one."""
        response = await self.call("eth_sendRawTransaction", [raw_tx])
        if response.result is not None and not isinstance(response.result, str):
            raise _malformed("eth_sendRawTransaction", response.result, "transaction hash")
        return response.result

    async def get_transaction_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Receipt for tx_hash, or None while the transaction is pending."""
        response = await self.call("eth_getTransactionReceipt", [tx_hash])
        if response.result is not None and not isinstance(response.result, dict):
            raise _malformed("eth_getTransactionReceipt", response.result, "receipt object")
        return response.result

    def get_stats_summary(self) -> dict:
        """Get statistics summary for all endpoints."""
        return {
            _redact(url): {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }
