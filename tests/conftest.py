"""
Shared fakes and fixtures for Ghost Operator tests.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import pytest

from ghost_operator.integrations.compute import SimulatedComputeTarget
from ghost_operator.models import (
    DetectionSignal,
    HistoricalIncident,
    Incident,
    MemoryDocument,
    MemoryHit,
    PastRemediation,
    PostMortem,
    RemediationAction,
    ServiceInfo,
)
from ghost_operator.storage.base import IncidentStore, MemorySearch

BASE_TIME = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_signal(
    title: str,
    summary: str = "",
    source: str = "tavily",
    url: Optional[str] = None,
    raw: Optional[Dict[str, Any]] = None,
    offset_seconds: int = 0,
) -> DetectionSignal:
    return DetectionSignal(
        source=source,
        title=title,
        summary=summary,
        url=url,
        raw=raw,
        timestamp=BASE_TIME + timedelta(seconds=offset_seconds),
    )


def make_incident(**overrides) -> Incident:
    fields = {
        "title": "Elevated error rates on checkout",
        "severity": "warning",
        "detected_at": BASE_TIME,
        "signals": [make_signal("Elevated error rates on checkout", "slow responses")],
    }
    fields.update(overrides)
    return Incident(**fields)


def past_incident(
    incident_id: str,
    services: Iterable[str] = ("ghost-api",),
    remediations: Iterable[PastRemediation] = (),
    hours_ago: int = 1,
) -> HistoricalIncident:
    return HistoricalIncident(
        id=incident_id,
        title=f"Past incident {incident_id}",
        severity="warning",
        detected_at=BASE_TIME - timedelta(hours=hours_ago),
        services=list(services),
        remediations=list(remediations),
    )


class FakeIncidentStore(IncidentStore):
    """In-memory store recording every call."""

    def __init__(self, similar: Optional[List[HistoricalIncident]] = None):
        self.similar = similar or []
        self.incidents: Dict[str, Incident] = {}
        self.remediations: List[RemediationAction] = []
        self.validations: Dict[str, bool] = {}
        self.resolved: Dict[str, datetime] = {}
        self.post_mortems: List[PostMortem] = []
        self.similar_queries: List[tuple] = []

    async def create_incident(self, incident: Incident) -> bool:
        self.incidents[incident.id] = incident
        return True

    async def add_remediation(self, incident_id: str, action: RemediationAction) -> bool:
        self.remediations.append(action)
        return True

    async def update_validation(self, action_id: str, validated: bool) -> bool:
        self.validations[action_id] = validated
        return True

    async def mark_resolved(self, incident_id: str, resolved_at: datetime) -> bool:
        self.resolved[incident_id] = resolved_at
        return True

    async def add_post_mortem(self, post_mortem: PostMortem) -> bool:
        self.post_mortems.append(post_mortem)
        return True

    async def find_similar_incidents(self, services, errors, exclude_id=None):
        self.similar_queries.append((set(services), set(errors), exclude_id))
        return list(self.similar)

    async def get_incident(self, incident_id: str):
        return None

    async def get_stats(self) -> Dict[str, Any]:
        return {"incidents": len(self.incidents)}


class BrokenIncidentStore(FakeIncidentStore):
    """Store whose every call raises."""

    async def create_incident(self, incident):
        raise ConnectionError("store down")

    async def add_remediation(self, incident_id, action):
        raise ConnectionError("store down")

    async def update_validation(self, action_id, validated):
        raise ConnectionError("store down")

    async def mark_resolved(self, incident_id, resolved_at):
        raise ConnectionError("store down")

    async def add_post_mortem(self, post_mortem):
        raise ConnectionError("store down")

    async def find_similar_incidents(self, services, errors, exclude_id=None):
        raise ConnectionError("store down")


class FakeMemorySearch(MemorySearch):
    def __init__(self, hits: Optional[List[MemoryHit]] = None, fail: bool = False):
        self.hits = hits or []
        self.fail = fail
        self.documents: List[MemoryDocument] = []
        self.queries: List[str] = []

    async def store(self, document: MemoryDocument) -> Optional[str]:
        if self.fail:
            raise ConnectionError("memory search down")
        self.documents.append(document)
        return f"doc-{len(self.documents)}"

    async def search(self, query: str, limit: int = 5) -> List[MemoryHit]:
        if self.fail:
            raise ConnectionError("memory search down")
        self.queries.append(query)
        return self.hits[:limit]


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def store() -> FakeIncidentStore:
    return FakeIncidentStore()


@pytest.fixture
def memory() -> FakeMemorySearch:
    return FakeMemorySearch()


@pytest.fixture
def compute() -> SimulatedComputeTarget:
    return SimulatedComputeTarget([
        ServiceInfo(id="srv-api", name="ghost-api", status="suspended"),
        ServiceInfo(id="srv-worker", name="ghost-worker", status="active"),
    ])
