"""
Tests for the validation and escalation loop.
"""
import asyncio

import pytest

from ghost_operator.integrations.compute import SimulatedComputeTarget
from ghost_operator.models import ActionType, ServiceInfo
from ghost_operator.remediation.actions import ActionExecutor
from ghost_operator.remediation.validation import (
    CancellationToken,
    ValidationLoop,
    latest_validatable_actions,
)

from conftest import BASE_TIME, BrokenIncidentStore, make_incident, no_sleep


def build_loop(compute, store, delay=30.0, sleeper=no_sleep):
    executor = ActionExecutor(compute, store, redundancy_target=2)
    loop = ValidationLoop(
        compute, store, executor,
        delay_seconds=delay,
        sleeper=sleeper,
        clock=lambda: BASE_TIME,
    )
    return executor, loop


async def remediate(executor, compute, incident, action_type, name):
    services = {s.name: s for s in await compute.list_services()}
    return await executor.execute(incident, action_type, services[name])


@pytest.mark.asyncio
async def test_healthy_service_resolves_incident(compute, store) -> None:
    executor, loop = build_loop(compute, store)
    incident = make_incident(services={"ghost-api"})
    action = await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")

    report = await loop.validate(incident)

    assert report.healthy
    assert not report.escalated
    assert report.checked == ["ghost-api"]
    assert action.validated is True
    assert store.validations == {action.id: True}
    assert incident.resolved_at == BASE_TIME
    assert store.resolved == {incident.id: BASE_TIME}


@pytest.mark.asyncio
async def test_failed_restart_escalates_to_scale(compute, store) -> None:
    compute.script("ghost-worker", "suspended")
    executor, loop = build_loop(compute, store)
    incident = make_incident(services={"ghost-worker"})
    restart = await remediate(executor, compute, incident, ActionType.RESTART, "ghost-worker")

    report = await loop.validate(incident)

    assert not report.healthy
    assert report.escalated
    assert restart.validated is False
    assert [a.type for a in report.escalations] == [ActionType.SCALE]
    assert report.escalations[0].reasoning == "escalation after failed restart"
    assert report.escalations[0].validated is None
    assert compute.instances["srv-worker"] == 2
    assert not incident.is_resolved


@pytest.mark.asyncio
async def test_failed_resume_escalates_to_restart(compute, store) -> None:
    compute.script("ghost-api", "suspended")
    executor, loop = build_loop(compute, store)
    incident = make_incident(services={"ghost-api"})
    await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")

    report = await loop.validate(incident)

    assert [a.type for a in report.escalations] == [ActionType.RESTART]
    assert compute.calls[-1] == ("restart", "srv-api", None)


@pytest.mark.asyncio
async def test_failed_scale_escalates_to_alert(compute, store) -> None:
    compute.script("ghost-worker", "suspended", "suspended")
    executor, loop = build_loop(compute, store)
    incident = make_incident(services={"ghost-worker"})
    await remediate(executor, compute, incident, ActionType.RESTART, "ghost-worker")
    await remediate(executor, compute, incident, ActionType.SCALE, "ghost-worker")

    report = await loop.validate(incident)

    alert = report.escalations[0]
    assert alert.type == ActionType.ALERT
    assert alert.target_service == "ghost-worker"
    assert alert.target_id is None
    assert not incident.is_resolved
    assert store.resolved == {}


@pytest.mark.asyncio
async def test_escalation_chain_is_bounded(compute, store) -> None:
    """A critical chain plus its escalation never exceeds three actions."""
    compute.script("ghost-worker", "suspended", "suspended")
    executor, loop = build_loop(compute, store)
    incident = make_incident(services={"ghost-worker"})
    await remediate(executor, compute, incident, ActionType.RESTART, "ghost-worker")
    await remediate(executor, compute, incident, ActionType.SCALE, "ghost-worker")

    await loop.validate(incident)

    assert [a.type for a in incident.remediation_actions] == [
        ActionType.RESTART, ActionType.SCALE, ActionType.ALERT,
    ]


@pytest.mark.asyncio
async def test_only_latest_action_per_service_is_checked(compute, store) -> None:
    executor, _ = build_loop(compute, store)
    incident = make_incident()
    await remediate(executor, compute, incident, ActionType.RESTART, "ghost-worker")
    scale = await remediate(executor, compute, incident, ActionType.SCALE, "ghost-worker")
    await executor.execute(incident, ActionType.ALERT, target_name="ghost-worker")

    assert latest_validatable_actions(incident) == {"ghost-worker": scale}


@pytest.mark.asyncio
async def test_missing_service_is_inconclusive(store) -> None:
    compute = SimulatedComputeTarget([ServiceInfo(id="srv-1", name="ghost-api")])
    executor, loop = build_loop(compute, store)
    incident = make_incident()
    action = await remediate(executor, compute, incident, ActionType.RESTART, "ghost-api")
    compute._services.clear()

    report = await loop.validate(incident)

    assert report.inconclusive == ["ghost-api"]
    assert not report.healthy
    assert not report.escalated
    assert action.validated is None
    assert not incident.is_resolved


@pytest.mark.asyncio
async def test_listing_failure_is_inconclusive(compute, store) -> None:
    executor, loop = build_loop(compute, store)
    incident = make_incident()
    await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")

    async def broken_listing():
        raise ConnectionError("api down")

    compute.list_services = broken_listing
    report = await loop.validate(incident)

    assert report.inconclusive == ["ghost-api"]
    assert not incident.is_resolved


@pytest.mark.asyncio
async def test_pending_alert_blocks_resolution(compute, store) -> None:
    executor, loop = build_loop(compute, store)
    incident = make_incident()
    await executor.execute(incident, ActionType.ALERT, target_name="stripe")

    report = await loop.validate(incident)

    assert report.healthy
    assert report.checked == []
    assert not incident.is_resolved


@pytest.mark.asyncio
async def test_noop_incident_resolves(compute, store) -> None:
    executor, loop = build_loop(compute, store)
    incident = make_incident(severity="info")
    await executor.execute(incident, ActionType.NOOP, target_name="none")

    report = await loop.validate(incident)

    assert report.healthy
    assert incident.is_resolved


@pytest.mark.asyncio
async def test_cancelled_before_wait(compute, store) -> None:
    executor, loop = build_loop(compute, store)
    incident = make_incident()
    action = await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")
    token = CancellationToken()
    token.cancel()

    report = await loop.validate(incident, token)

    assert report.cancelled
    assert action.validated is None
    assert not incident.is_resolved
    assert store.validations == {}


@pytest.mark.asyncio
async def test_cancelled_during_wait(compute, store) -> None:
    token = CancellationToken()

    async def slow_sleeper(seconds):
        token.cancel()
        await asyncio.sleep(3600)

    executor, loop = build_loop(compute, store, sleeper=slow_sleeper)
    incident = make_incident()
    await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")

    report = await asyncio.wait_for(loop.validate(incident, token), timeout=5)

    assert report.cancelled
    assert not incident.is_resolved


@pytest.mark.asyncio
async def test_sleeper_receives_delay(compute, store) -> None:
    delays = []

    async def recording_sleeper(seconds):
        delays.append(seconds)

    _, loop = build_loop(compute, store, delay=12.5, sleeper=recording_sleeper)
    await loop.validate(make_incident())

    assert delays == [12.5]


@pytest.mark.asyncio
async def test_store_failure_does_not_block_resolution(compute) -> None:
    store = BrokenIncidentStore()
    executor, loop = build_loop(compute, store)
    incident = make_incident()
    await remediate(executor, compute, incident, ActionType.RESUME, "ghost-api")

    report = await loop.validate(incident)

    assert report.healthy
    assert incident.resolved_at == BASE_TIME
