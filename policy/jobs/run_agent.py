#!/usr/bin/env python3
"""
policy/jobs/run_agent.py - CLI entrypoint for the policy execution agent.

Runs a cycle immediately at start, then one cycle every POLL_INTERVAL_MS
(measured from cycle start). The next cycle never starts before the
previous one has finished.

Usage:
    sentinel-agent
    sentinel-agent --once --no-health
    python -m policy.jobs.run_agent --log-level DEBUG --no-json-logs
"""

import asyncio
import signal
import sys
import time
from pathlib import Path
from typing import Optional

import click
import httpx

from chains.providers import RPCProvider
from chains.vault import VaultReader
from chains.wallet import AgentWallet
from config import AgentSettings, load_settings
from core.constants import ErrorCode
from core.exceptions import ConfigError
from core.logging import get_logger, log_error, set_global_context, setup_logging
from core.time import monotonic_ms
from execution.submitter import ExecutionSubmitter, SubmitterConfig
from monitoring.health import bind_health_socket, build_health_server, create_health_app
from monitoring.stats import AgentStats
from policy.coordinator import CycleCoordinator, check_agent_authorization

__version__ = "0.1.0"

logger = get_logger("sentinel.agent")


class AgentRunner:
    """Owns the ledger clients, the coordinator and the schedule."""

    def __init__(
        self,
        settings: AgentSettings,
        stats: Optional[AgentStats] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.stats = stats or AgentStats()
        self.started_at = time.monotonic()
        self._stop = asyncio.Event()

        tuning = settings.tuning
        self.provider = RPCProvider(
            list(settings.rpc_urls),
            timeout_seconds=tuning.rpc_timeout_seconds,
            transport=transport,
        )
        self.wallet = AgentWallet(settings.private_key)
        self.reader = VaultReader(self.provider, settings.vault_address)
        self.submitter = ExecutionSubmitter(
            self.provider,
            self.wallet,
            settings.vault_address,
            config=SubmitterConfig(
                receipt_timeout_seconds=tuning.receipt_timeout_seconds,
                receipt_poll_interval_ms=tuning.receipt_poll_interval_ms,
                gas_limit_multiplier=tuning.gas_limit_multiplier,
            ),
        )
        self.coordinator = CycleCoordinator(
            self.reader,
            self.submitter,
            stats=self.stats,
            asset_decimals=tuning.asset_decimals,
        )

    def request_stop(self) -> None:
        self._stop.set()

    def _handle_shutdown(self, signum: int) -> None:
        logger.info("Shutdown requested", extra={"context": {"signal": signum}})
        self.request_stop()

    def install_signal_handlers(self) -> None:
        """SIGINT/SIGTERM finish the current cycle, then stop."""
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(signum, self._handle_shutdown, signum)
            except NotImplementedError:
                # Windows event loops
                signal.signal(signum, lambda s, _f: loop.call_soon_threadsafe(self._handle_shutdown, s))

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    async def _sleep(self, seconds: float) -> None:
        """Sleep, waking early on shutdown."""
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return

    async def _serve_health(self, server, sock) -> None:
        """Run the health server; its failure never stops the cycles."""
        try:
            await server.serve(sockets=[sock])
        except (Exception, SystemExit) as e:
            # uvicorn exits the process on startup errors
            log_error(
                logger, ErrorCode.HEALTH_SERVER_ERROR.value,
                f"Health endpoint stopped: {e!r}",
                phase="health", port=self.settings.port,
            )
        finally:
            sock.close()

    def _start_health(self) -> tuple:
        """
        Bind the health port and start serving it in the background.

        Raises:
            ConfigError: the port cannot be bound
        """
        host = self.settings.tuning.health_host
        port = self.settings.port
        try:
            sock = bind_health_socket(host, port)
        except OSError as e:
            raise ConfigError(
                f"Health endpoint cannot bind {host}:{port}",
                [f"PORT: {e}"],
            ) from e

        app = create_health_app(
            self.stats,
            agent_address=self.wallet.address,
            vault_address=self.reader.vault_address,
            started_at=self.started_at,
            extra=lambda: {"rpc": self.provider.get_stats_summary()},
        )
        server = build_health_server(app, host=host, port=port)
        task = asyncio.create_task(self._serve_health(server, sock))
        logger.info(f"Health endpoint available at http://localhost:{port}/health")
        return server, task

    async def run(
        self,
        max_cycles: Optional[int] = None,
        serve_health: bool = True,
        handle_signals: bool = False,
    ) -> None:
        """
        Startup check, then the scheduling loop.

        Raises:
            ConfigError: require_authorized_agent is set and the check failed,
                or the health port cannot be bound
        """
        if handle_signals:
            self.install_signal_handlers()

        logger.info(
            "Agent wallet initialized",
            extra={"context": {"agent_address": self.wallet.address}},
        )

        health_server = None
        health_task = None
        cycles = 0
        try:
            authorized = await check_agent_authorization(self.reader, self.wallet)
            if self.settings.tuning.require_authorized_agent and authorized is not True:
                raise ConfigError(
                    "Agent is not authorized on the vault",
                    [f"agent(): expected {self.wallet.address}"],
                )

            if serve_health:
                health_server, health_task = self._start_health()

            interval_s = self.settings.poll_interval_ms / 1000
            logger.info(f"Starting polling every {self.settings.poll_interval_ms}ms")

            while not self.stop_requested:
                cycle_start = monotonic_ms()
                await self.coordinator.run_cycle()
                cycles += 1

                if max_cycles is not None and cycles >= max_cycles:
                    break

                elapsed_s = (monotonic_ms() - cycle_start) / 1000
                await self._sleep(interval_s - elapsed_s)
        finally:
            if health_task is not None:
                health_server.should_exit = True
                await health_task
            await self.provider.close()

    def get_summary(self) -> dict:
        snapshot = self.stats.snapshot()
        return {
            "elapsed_seconds": int(time.monotonic() - self.started_at),
            "agent_address": self.wallet.address,
            "vault_address": self.reader.vault_address,
            **snapshot.to_dict(),
        }


@click.command()
@click.option(
    "--config",
    "-c",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Tuning YAML (default: config/agent.yaml)",
)
@click.option(
    "--log-level",
    "-l",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--json-logs/--no-json-logs",
    default=True,
    help="Use JSON log format",
)
@click.option(
    "--log-file",
    default=None,
    help="Also write JSON logs to this file",
)
@click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Run a single cycle and exit",
)
@click.option(
    "--max-cycles",
    default=None,
    type=click.IntRange(min=1),
    help="Stop after this many cycles (default: run until stopped)",
)
@click.option(
    "--health/--no-health",
    default=True,
    help="Serve the /health endpoint",
)
def main(
    config_path: Optional[Path],
    log_level: str,
    json_logs: bool,
    log_file: Optional[str],
    once: bool,
    max_cycles: Optional[int],
    health: bool,
) -> None:
    """
    Sentinel policy execution agent.

    Watches the vault's payout policies and executes the ones that are due.
    """
    setup_logging(level=log_level, json_output=json_logs, log_file=log_file)
    set_global_context(service="sentinel-agent", version=__version__)

    logger.info("Starting Sentinel agent")

    try:
        settings = load_settings(tuning_path=config_path)
    except ConfigError as e:
        logger.error(
            "Configuration validation failed",
            extra={"context": {"errors": e.errors}},
        )
        for err in e.errors:
            click.echo(f"  - {err}", err=True)
        sys.exit(2)

    logger.info("Configuration loaded", extra={"context": settings.to_log_dict()})

    runner = AgentRunner(settings)

    try:
        asyncio.run(runner.run(
            max_cycles=1 if once else max_cycles,
            serve_health=health,
            handle_signals=True,
        ))
    except ConfigError as e:
        logger.error(str(e), extra={"context": {"errors": e.errors}})
        sys.exit(2)
    except KeyboardInterrupt:
        logger.info("Agent interrupted")
    except Exception as e:
        logger.error(
            f"Fatal error in main: {e}",
            extra={"context": {"error": str(e)}},
            exc_info=True,
        )
        sys.exit(1)

    summary = runner.get_summary()
    logger.info("Agent stopped", extra={"context": summary})

    click.echo("\n" + "=" * 60)
    click.echo("SENTINEL AGENT SESSION SUMMARY")
    click.echo("=" * 60)
    click.echo(f"Duration: {summary['elapsed_seconds']} seconds")
    click.echo(f"Vault: {summary['vault_address']}")
    click.echo(f"Cycles run: {summary['cyclesRun']} ({summary['cyclesAborted']} aborted)")
    click.echo(f"Policies executed: {summary['executedCount']}")
    click.echo(f"Execution failures: {summary['executionFailures']}")
    click.echo("=" * 60)


if __name__ == "__main__":
    main()
