"""
Tests for remediation strategy selection and execution.
"""
import pytest

from ghost_operator.history.advisor import Advisory
from ghost_operator.integrations.compute import SimulatedComputeTarget
from ghost_operator.models import ActionType, ServiceInfo, Severity
from ghost_operator.remediation.strategy import (
    STRATEGY_RULES,
    StrategyEngine,
    match_services,
    names_match,
)

from conftest import BrokenIncidentStore, FakeIncidentStore, make_incident


def types(actions):
    return [a.type for a in actions]


def test_names_match_both_directions() -> None:
    assert names_match("ghost-api", "Ghost-API-prod")
    assert names_match("ghost-api-prod", "ghost-api")
    assert not names_match("redis", "ghost-api")
    assert not names_match("", "ghost-api")


def test_match_services_each_live_service_once() -> None:
    live = [ServiceInfo(id="1", name="ghost-api"), ServiceInfo(id="2", name="worker")]
    matched = match_services({"ghost", "ghost-api", "aws"}, live)

    assert [s.id for s in matched] == ["1"]


def test_match_services_prefers_exact_name() -> None:
    live = [ServiceInfo(id="1", name="ghost-api"), ServiceInfo(id="2", name="ghost-api-2")]

    matched = match_services({"ghost-api", "ghost-api-2"}, live)

    assert sorted(s.id for s in matched) == ["1", "2"]
    assert [s.id for s in match_services({"GHOST-API-2"}, live)] == ["2"]


def test_strategy_table_order() -> None:
    assert [r.name for r in STRATEGY_RULES] == [
        "suspended-service", "warning-with-precedent", "critical", "warning",
    ]


@pytest.mark.asyncio
async def test_info_incident_gets_single_noop(compute, store) -> None:
    incident = make_incident(severity=Severity.INFO, services={"ghost-api"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.NOOP]
    assert actions[0].target_service == "none"
    assert compute.calls == []


@pytest.mark.asyncio
async def test_suspended_service_is_resumed(compute, store) -> None:
    """Suspended services are resumed whatever the severity."""
    incident = make_incident(severity=Severity.CRITICAL, services={"ghost-api", "render"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.RESUME]
    assert actions[0].target_id == "srv-api"
    assert compute.calls == [("resume", "srv-api", None)]
    assert store.remediations == actions


@pytest.mark.asyncio
async def test_critical_restarts_then_scales(compute, store) -> None:
    incident = make_incident(severity=Severity.CRITICAL, services={"ghost-worker"})

    actions = await StrategyEngine(compute, store, redundancy_target=3).remediate(
        incident, Advisory()
    )

    assert types(actions) == [ActionType.RESTART, ActionType.SCALE]
    assert compute.instances["srv-worker"] == 3
    assert actions[1].description == "Scaled ghost-worker to 3 instances"


@pytest.mark.asyncio
async def test_warning_restarts_only(compute, store) -> None:
    incident = make_incident(severity=Severity.WARNING, services={"ghost-worker"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.RESTART]
    assert actions[0].reasoning == "standard first response"


@pytest.mark.asyncio
async def test_warning_with_failed_restart_history_escalates(compute, store) -> None:
    incident = make_incident(severity=Severity.WARNING, services={"ghost-worker"})
    advisory = Advisory(had_failed_restarts=True)

    actions = await StrategyEngine(compute, store).remediate(incident, advisory)

    assert types(actions) == [ActionType.RESTART, ActionType.SCALE]
    assert actions[0].reasoning == "escalate preemptively based on precedent"


@pytest.mark.asyncio
async def test_no_match_raises_alert(compute, store) -> None:
    incident = make_incident(severity=Severity.WARNING, services={"stripe", "aws"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.ALERT]
    assert actions[0].target_service == "aws"
    assert compute.calls == []


@pytest.mark.asyncio
async def test_no_services_alert_targets_unknown(compute, store) -> None:
    incident = make_incident(severity=Severity.WARNING)

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.ALERT]
    assert actions[0].target_service == "unknown"


@pytest.mark.asyncio
async def test_failed_step_does_not_abort_chain(store) -> None:
    compute = SimulatedComputeTarget(
        [ServiceInfo(id="srv-1", name="ghost-api")], failing={"restart"}
    )
    incident = make_incident(severity=Severity.CRITICAL, services={"ghost-api"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert types(actions) == [ActionType.RESTART, ActionType.SCALE]
    assert [a.success for a in actions] == [False, True]


@pytest.mark.asyncio
async def test_compute_exception_recorded_as_failure() -> None:
    class ExplodingCompute(SimulatedComputeTarget):
        async def restart(self, service_id):
            raise RuntimeError("boom")

    compute = ExplodingCompute([ServiceInfo(id="srv-1", name="ghost-api")])
    incident = make_incident(severity=Severity.WARNING, services={"ghost-api"})

    actions = await StrategyEngine(compute, FakeIncidentStore()).remediate(incident, Advisory())

    assert types(actions) == [ActionType.RESTART]
    assert actions[0].success is False


@pytest.mark.asyncio
async def test_store_failure_does_not_stop_remediation(compute) -> None:
    incident = make_incident(severity=Severity.WARNING, services={"ghost-worker"})

    actions = await StrategyEngine(compute, BrokenIncidentStore()).remediate(incident, Advisory())

    assert types(actions) == [ActionType.RESTART]
    assert incident.remediation_actions == actions


@pytest.mark.asyncio
async def test_overlapping_service_names_each_get_a_chain(store) -> None:
    """A service whose name contains another's still gets its own chain."""
    compute = SimulatedComputeTarget([
        ServiceInfo(id="srv-1", name="ghost-api", status="suspended"),
        ServiceInfo(id="srv-2", name="ghost-api-2", status="suspended"),
    ])
    incident = make_incident(severity=Severity.CRITICAL, services={"ghost-api", "ghost-api-2"})

    actions = await StrategyEngine(compute, store).remediate(incident, Advisory())

    assert {a.target_service for a in actions} == {"ghost-api", "ghost-api-2"}
    assert sorted(compute.calls) == [("resume", "srv-1", None), ("resume", "srv-2", None)]
