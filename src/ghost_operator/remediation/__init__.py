"""
Automated remediation for Ghost Operator.

Strategy selection, action execution, and post-remediation validation with
escalation.
"""

from .actions import ActionExecutor, describe_action
from .strategy import STRATEGY_RULES, Plan, StrategyEngine, match_services
from .validation import (
    ESCALATION_LADDER,
    CancellationToken,
    ValidationLoop,
    ValidationReport,
)

__all__ = [
    "ActionExecutor",
    "describe_action",
    "STRATEGY_RULES",
    "Plan",
    "StrategyEngine",
    "match_services",
    "ESCALATION_LADDER",
    "CancellationToken",
    "ValidationLoop",
    "ValidationReport",
]
