"""
Storage and persistence for Ghost Operator.

Provides the incident history store and memory search over post-mortems.
"""

from .base import IncidentStore, MemorySearch
from .incident_store import SQLiteIncidentStore
from .memory_search import LocalMemorySearch, SensoMemorySearch

__all__ = [
    "IncidentStore",
    "MemorySearch",
    "SQLiteIncidentStore",
    "LocalMemorySearch",
    "SensoMemorySearch",
]
