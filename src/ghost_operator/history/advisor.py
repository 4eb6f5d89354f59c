"""
History-informed advice for the remediation strategy.

The advisor looks at past incidents touching the same services (or, lacking
services, the same error markers) and at post-mortems returned by memory
search, and reduces them to an ``Advisory``: how often restarts failed
before and whether past write-ups point at escalation. It never mutates the
incident and a failing collaborator only makes the advisory neutral.
"""
from dataclasses import dataclass, field
from typing import List, Sequence

from ..collaborators import guard
from ..constants import DEFAULT_MEMORY_SEARCH_LIMIT
from ..logging_context import get_logger
from ..models import ActionType, HistoricalIncident, Incident, MemoryHit, PastRemediation
from ..reasoning import catalog
from ..reasoning.rules import contains_any
from ..storage.base import IncidentStore, MemorySearch

logger = get_logger(__name__)

HINT_MAX_LENGTH = 200


@dataclass
class Advisory:
    """
    Summary of precedent for one incident.

    Attributes:
        similar_incidents: Past incidents considered, most recent first
        memory_hits: Memory search results for the incident title
        restart_fail_rate: Failed restarts over all past restarts (0.0 if none)
        had_failed_restarts: Any past restart failed
        escalation_hints: Memory snippets that mention escalation
    """
    similar_incidents: List[HistoricalIncident] = field(default_factory=list)
    memory_hits: List[MemoryHit] = field(default_factory=list)
    restart_fail_rate: float = 0.0
    had_failed_restarts: bool = False
    escalation_hints: List[str] = field(default_factory=list)

    @property
    def recommends_escalation(self) -> bool:
        return self.had_failed_restarts or bool(self.escalation_hints)

    def describe(self) -> str:
        parts = [
            f"{len(self.similar_incidents)} similar incident(s)",
            f"{len(self.memory_hits)} context doc(s)",
            f"restart fail rate {self.restart_fail_rate:.0%}",
        ]
        if self.escalation_hints:
            parts.append(f"{len(self.escalation_hints)} escalation hint(s)")
        return ", ".join(parts)


def restart_stats(remediations: Sequence[PastRemediation]) -> tuple:
    """Return ``(restarts, failed_restarts)`` over ``remediations``."""
    restarts = [r for r in remediations if r.type == ActionType.RESTART]
    failed = [r for r in restarts if not r.success]
    return len(restarts), len(failed)


def escalation_hints(hits: Sequence[MemoryHit]) -> List[str]:
    """Snippets of the hits whose content mentions an escalation phrase."""
    hints = []
    for hit in hits:
        if contains_any(hit.content, catalog.ESCALATION_PHRASES):
            snippet = " ".join(hit.content.split())[:HINT_MAX_LENGTH]
            hints.append(f"{hit.title}: {snippet}")
    return hints


class HistoryAdvisor:
    """
    Builds an ``Advisory`` from the incident store and memory search.

    Example:
        >>> advisor = HistoryAdvisor(store, memory)
        >>> advisory = await advisor.advise(incident)
        >>> advisory.recommends_escalation
        False
    """

    def __init__(
        self,
        store: IncidentStore,
        memory: MemorySearch,
        memory_limit: int = DEFAULT_MEMORY_SEARCH_LIMIT,
    ):
        self.store = store
        self.memory = memory
        self.memory_limit = memory_limit

    async def advise(self, incident: Incident) -> Advisory:
        similar = await guard(
            self.store.find_similar_incidents(
                incident.services, incident.errors, exclude_id=incident.id
            ),
            fallback=[],
            operation="store.find_similar_incidents",
        )
        hits = await guard(
            self.memory.search(incident.title, self.memory_limit),
            fallback=[],
            operation="memory.search",
        )

        past_actions = [r for past in similar.value for r in past.remediations]
        restarts, failed = restart_stats(past_actions)

        advisory = Advisory(
            similar_incidents=list(similar.value),
            memory_hits=list(hits.value),
            restart_fail_rate=failed / restarts if restarts else 0.0,
            had_failed_restarts=failed > 0,
            escalation_hints=escalation_hints(hits.value),
        )

        logger.info(f"History advisory: {advisory.describe()}")
        if advisory.recommends_escalation:
            logger.info("Precedent recommends escalation beyond a plain restart")
        return advisory
