"""
Signal fusion and classification.
"""

__all__ = [
    "SignalFuser",
    "dedupe_signals",
    "extract_services",
    "extract_errors",
    "classify_severity",
    "infer_root_cause",
    "SEVERITY_RULES",
    "ROOT_CAUSE_RULES",
    "Rule",
    "RuleTable",
]

from .fuser import (
    SignalFuser,
    dedupe_signals,
    extract_services,
    extract_errors,
    classify_severity,
    infer_root_cause,
    SEVERITY_RULES,
    ROOT_CAUSE_RULES,
)
from .rules import Rule, RuleTable
