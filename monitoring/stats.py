"""
monitoring/stats.py - Process-wide agent counters.

AgentStats is the one piece of state shared between the cycle
coordinator (writer) and the health endpoint (reader). All access goes
through the lock; readers get an immutable StatsSnapshot.

Counters live for the process lifetime and start at zero:
- executed_count: confirmed successful executions only
- last_run_ms: Unix ms at which the latest cycle started (0 = never)
"""

import threading
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from policy.coordinator import CycleReport


@dataclass(frozen=True)
class StatsSnapshot:
    """Point-in-time copy of the agent counters."""
    executed_count: int = 0
    last_run_ms: int = 0
    cycles_run: int = 0
    cycles_aborted: int = 0
    execution_failures: int = 0
    read_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "executedCount": self.executed_count,
            "lastRunTimestamp": self.last_run_ms,
            "cyclesRun": self.cycles_run,
            "cyclesAborted": self.cycles_aborted,
            "executionFailures": self.execution_failures,
            "readFailures": self.read_failures,
        }


class AgentStats:
    """Lock-guarded, monotonically increasing agent counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._executed_count = 0
        self._last_run_ms = 0
        self._cycles_run = 0
        self._cycles_aborted = 0
        self._execution_failures = 0
        self._read_failures = 0

    def mark_run(self, ts_ms: int) -> None:
        """Stamp the start of a cycle."""
        with self._lock:
            self._last_run_ms = max(self._last_run_ms, ts_ms)

    def record_execution(self) -> None:
        """One confirmed successful execution."""
        with self._lock:
            self._executed_count += 1

    def record_execution_failure(self) -> None:
        with self._lock:
            self._execution_failures += 1

    def record_cycle(self, report: "CycleReport") -> None:
        """Fold a finished cycle into the cumulative counters."""
        with self._lock:
            self._cycles_run += 1
            if report.aborted:
                self._cycles_aborted += 1
            self._read_failures += report.read_failures

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                executed_count=self._executed_count,
                last_run_ms=self._last_run_ms,
                cycles_run=self._cycles_run,
                cycles_aborted=self._cycles_aborted,
                execution_failures=self._execution_failures,
                read_failures=self._read_failures,
            )

    @property
    def executed_count(self) -> int:
        with self._lock:
            return self._executed_count

    @property
    def last_run_ms(self) -> int:
        with self._lock:
            return self._last_run_ms
