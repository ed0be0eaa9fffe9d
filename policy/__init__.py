"""Policy package for Sentinel: eligibility gates and cycle coordination."""

from policy.eligibility import GATES, evaluate
from policy.coordinator import (
    CycleCoordinator,
    CycleReport,
    check_agent_authorization,
)

__all__ = [
    "GATES",
    "evaluate",
    "CycleCoordinator",
    "CycleReport",
    "check_agent_authorization",
]
