"""
Tests for the history advisor.
"""
import pytest

from ghost_operator.history.advisor import Advisory, HistoryAdvisor, escalation_hints, restart_stats
from ghost_operator.models import ActionType, MemoryHit, PastRemediation

from conftest import (
    BrokenIncidentStore,
    FakeIncidentStore,
    FakeMemorySearch,
    make_incident,
    past_incident,
)


def restart(success: bool) -> PastRemediation:
    return PastRemediation(type=ActionType.RESTART, success=success)


def test_restart_stats_ignores_other_actions() -> None:
    remediations = [
        restart(True),
        restart(False),
        PastRemediation(type=ActionType.SCALE, success=False),
    ]
    assert restart_stats(remediations) == (2, 1)


def test_escalation_hints_match_phrases() -> None:
    hits = [
        MemoryHit(title="PM 1", content="Restart failed twice; we had to scale out."),
        MemoryHit(title="PM 2", content="Resolved by restart."),
    ]
    hints = escalation_hints(hits)

    assert len(hints) == 1
    assert hints[0].startswith("PM 1:")


def test_neutral_advisory() -> None:
    advisory = Advisory()
    assert advisory.restart_fail_rate == 0.0
    assert not advisory.recommends_escalation


@pytest.mark.asyncio
async def test_advise_computes_fail_rate() -> None:
    store = FakeIncidentStore(similar=[
        past_incident("a", remediations=[restart(True), restart(False)]),
        past_incident("b", remediations=[restart(True), restart(True)]),
    ])
    advisor = HistoryAdvisor(store, FakeMemorySearch())
    incident = make_incident(services={"ghost-api"})

    advisory = await advisor.advise(incident)

    assert advisory.restart_fail_rate == pytest.approx(0.25)
    assert advisory.had_failed_restarts
    assert advisory.recommends_escalation
    assert len(advisory.similar_incidents) == 2
    assert store.similar_queries[0][2] == incident.id


@pytest.mark.asyncio
async def test_advise_uses_memory_hints() -> None:
    memory = FakeMemorySearch(hits=[
        MemoryHit(title="PM", content="Insufficient instances, manual intervention needed"),
    ])
    advisor = HistoryAdvisor(FakeIncidentStore(), memory)
    incident = make_incident()

    advisory = await advisor.advise(incident)

    assert not advisory.had_failed_restarts
    assert advisory.escalation_hints
    assert advisory.recommends_escalation
    assert memory.queries == [incident.title]


@pytest.mark.asyncio
async def test_advise_degrades_when_collaborators_fail() -> None:
    advisor = HistoryAdvisor(BrokenIncidentStore(), FakeMemorySearch(fail=True))
    incident = make_incident()

    advisory = await advisor.advise(incident)

    assert advisory.similar_incidents == []
    assert advisory.memory_hits == []
    assert not advisory.recommends_escalation
    assert incident.remediation_actions == []
