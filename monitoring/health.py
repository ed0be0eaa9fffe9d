"""
monitoring/health.py - Liveness endpoint.

GET /health returns the agent counters plus identity and uptime:

  {
    "status": "ok",
    "agentAddress": "0x...",
    "vaultAddress": "0x...",
    "executedCount": 3,
    "lastRunTimestamp": 1767225600000,
    "cyclesRun": 42,
    ...
    "processUptime": 1234.5
  }

An unmoving executedCount next to an advancing lastRunTimestamp means
the loop is alive but not executing anything.

The handler only reads an AgentStats snapshot; it never touches the
ledger or waits on a cycle.
"""

import socket
import time
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from core.constants import DEFAULT_HEALTH_HOST, DEFAULT_HEALTH_PORT
from monitoring.stats import AgentStats


def create_health_app(
    stats: AgentStats,
    agent_address: str,
    vault_address: str,
    started_at: float | None = None,
    clock: Callable[[], float] = time.monotonic,
    extra: Callable[[], dict[str, Any]] | None = None,
) -> FastAPI:
    """
    Build the health-check app.

    Args:
        stats: Shared counters (read only here)
        agent_address: Address derived from the signing key
        vault_address: Vault being automated
        started_at: Process start on `clock`'s time base (default: now)
        clock: Monotonic clock in seconds
        extra: Optional callable adding diagnostics (e.g. RPC stats)
    """
    start = clock() if started_at is None else started_at
    app = FastAPI(title="sentinel-agent", docs_url=None, redoc_url=None)

    @app.get("/health")
    async def health() -> JSONResponse:
        payload: dict[str, Any] = {
            "status": "ok",
            "agentAddress": agent_address,
            "vaultAddress": vault_address,
            **stats.snapshot().to_dict(),
            "processUptime": round(clock() - start, 3),
        }
        if extra is not None:
            payload.update(extra())
        return JSONResponse(payload)

    return app


def build_health_server(
    app: FastAPI,
    host: str = DEFAULT_HEALTH_HOST,
    port: int = DEFAULT_HEALTH_PORT,
    log_level: str = "warning",
) -> uvicorn.Server:
    """uvicorn server meant to run as a task on the agent's event loop."""
    return uvicorn.Server(
        uvicorn.Config(
            app,
            host=host,
            port=port,
            loop="asyncio",
            log_level=log_level.lower(),
            access_log=False,
        )
    )


def bind_health_socket(host: str, port: int) -> socket.socket:
    """
    Bind the listening socket before the server starts.

    Raises:
        OSError: the address is taken or cannot be bound
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock
