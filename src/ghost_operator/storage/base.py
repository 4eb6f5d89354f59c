"""
Storage contracts consumed by the decision engine.

Implementations must never raise into the engine: unavailability degrades to
``False`` / ``None`` / empty results. Callers still route every call through
``ghost_operator.collaborators.guard``.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..models import (
    HistoricalIncident,
    Incident,
    MemoryDocument,
    MemoryHit,
    PostMortem,
    RemediationAction,
)


class IncidentStore(ABC):
    """Durable incident history."""

    @abstractmethod
    async def create_incident(self, incident: Incident) -> bool:
        """Persist a newly classified incident."""

    @abstractmethod
    async def add_remediation(self, incident_id: str, action: RemediationAction) -> bool:
        """Attach an executed action to an incident."""

    @abstractmethod
    async def update_validation(self, action_id: str, validated: bool) -> bool:
        """Record the validation verdict of an action."""

    @abstractmethod
    async def mark_resolved(self, incident_id: str, resolved_at: datetime) -> bool:
        """Record that an incident recovered."""

    @abstractmethod
    async def add_post_mortem(self, post_mortem: PostMortem) -> bool:
        """Attach the post-mortem to its incident."""

    @abstractmethod
    async def find_similar_incidents(
        self,
        services: Iterable[str],
        errors: Iterable[str],
        exclude_id: Optional[str] = None,
    ) -> List[HistoricalIncident]:
        """
        Past incidents affecting any of ``services``.

        Falls back to matching ``errors`` when no services are given.
        Results are ordered most recent first and capped at the store's
        configured limit.
        """

    @abstractmethod
    async def get_incident(self, incident_id: str) -> Optional[HistoricalIncident]:
        """Read back one incident."""

    @abstractmethod
    async def get_stats(self) -> Dict[str, Any]:
        """Counts of stored entities."""


class MemorySearch(ABC):
    """Free-text search over published post-mortems."""

    @abstractmethod
    async def store(self, document: MemoryDocument) -> Optional[str]:
        """Publish a document; returns its id, or ``None`` on failure."""

    @abstractmethod
    async def search(self, query: str, limit: int = 5) -> List[MemoryHit]:
        """Documents relevant to ``query``, best first."""
