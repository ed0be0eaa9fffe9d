# PATH: monitoring/__init__.py
"""
Monitoring package for Sentinel.

- AgentStats / StatsSnapshot: process-wide counters
- create_health_app / build_health_server: /health endpoint
"""

from monitoring.stats import AgentStats, StatsSnapshot
from monitoring.health import build_health_server, create_health_app

__all__ = [
    "AgentStats",
    "StatsSnapshot",
    "build_health_server",
    "create_health_app",
]
