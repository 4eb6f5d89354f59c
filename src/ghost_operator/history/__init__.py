"""
Incident history analysis for Ghost Operator.
"""

from .advisor import Advisory, HistoryAdvisor

__all__ = ["Advisory", "HistoryAdvisor"]
