"""
Tests for compute targets, detection sources and simulation scenarios.
"""
import pytest

from ghost_operator.constants import HEALTH_CHECK_SOURCE
from ghost_operator.exceptions import ComputeTargetError
from ghost_operator.integrations.compute import RenderComputeTarget, SimulatedComputeTarget
from ghost_operator.integrations.detection import (
    CompositeDetector,
    ComputeHealthSource,
    DetectionSource,
    StaticSource,
)
from ghost_operator.integrations.simulation import SIMULATION_SCENARIOS, get_scenario
from ghost_operator.models import ServiceInfo

from conftest import make_signal


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"[]" if payload is not None else b""

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.headers = {}
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append((method, url, kwargs))
        return self.responses.pop(0)


class FailingSource(DetectionSource):
    name = "failing"

    async def detect(self):
        raise RuntimeError("search API down")


@pytest.mark.asyncio
async def test_simulated_target_scripted_statuses() -> None:
    compute = SimulatedComputeTarget([ServiceInfo(id="srv-1", name="ghost-api")])
    compute.script("ghost-api", "suspended")

    assert await compute.restart("srv-1")
    assert await compute.get_status("srv-1") == "suspended"
    assert await compute.restart("srv-1")
    assert await compute.get_status("srv-1") == "active"
    assert await compute.get_status("srv-unknown") is None


@pytest.mark.asyncio
async def test_simulated_target_failures() -> None:
    compute = SimulatedComputeTarget(
        [ServiceInfo(id="srv-1", name="ghost-api", status="suspended")],
        failing={"resume"},
    )

    assert await compute.resume("srv-1") is False
    assert await compute.get_status("srv-1") == "suspended"
    with pytest.raises(ComputeTargetError):
        await compute.restart("srv-missing")


@pytest.mark.asyncio
async def test_simulated_listing_is_a_copy() -> None:
    compute = SimulatedComputeTarget([ServiceInfo(id="srv-1", name="ghost-api")])
    [listed] = await compute.list_services()
    listed.status = "suspended"

    assert await compute.get_status("srv-1") == "active"


@pytest.mark.asyncio
async def test_render_list_services_maps_payload() -> None:
    session = FakeSession([FakeResponse(payload=[
        {"service": {"id": "srv-1", "name": "ghost-api", "type": "web_service",
                     "suspended": "suspended",
                     "serviceDetails": {"url": "https://ghost-api.onrender.com"}}},
        {"service": {"id": "srv-2", "name": "ghost-worker", "suspended": "not_suspended"}},
    ])])
    compute = RenderComputeTarget(api_key="key", base_url="https://render.test/v1", session=session)

    services = await compute.list_services()

    assert [(s.id, s.status) for s in services] == [("srv-1", "suspended"), ("srv-2", "active")]
    assert services[0].url == "https://ghost-api.onrender.com"
    assert session.requests[0][0:2] == ("GET", "https://render.test/v1/services")
    assert session.headers["Authorization"] == "Bearer key"


@pytest.mark.asyncio
async def test_render_scale_patches_instances() -> None:
    session = FakeSession([FakeResponse()])
    compute = RenderComputeTarget(api_key="key", base_url="https://render.test/v1", session=session)

    assert await compute.scale("srv-1", 3)
    method, url, kwargs = session.requests[0]
    assert (method, url) == ("PATCH", "https://render.test/v1/services/srv-1")
    assert kwargs["json"] == {"serviceDetails": {"numInstances": 3}}


@pytest.mark.asyncio
async def test_render_error_status_raises() -> None:
    session = FakeSession([FakeResponse(status_code=404)])
    compute = RenderComputeTarget(api_key="key", session=session)

    with pytest.raises(ComputeTargetError):
        await compute.restart("srv-1")
    assert len(session.requests) == 1


@pytest.mark.asyncio
async def test_health_source_reports_unhealthy_services(compute) -> None:
    signals = await ComputeHealthSource(compute).detect()

    assert len(signals) == 1
    assert signals[0].source == HEALTH_CHECK_SOURCE
    assert signals[0].title == "Service unhealthy: ghost-api"
    assert signals[0].raw["name"] == "ghost-api"


@pytest.mark.asyncio
async def test_composite_isolates_failing_source() -> None:
    a = make_signal("Render outage", url="https://status.render.com")
    b = make_signal("Render outage (dup)", url="https://status.render.com")
    c = make_signal("Redis latency")
    detector = CompositeDetector([
        StaticSource([a]),
        FailingSource(),
        StaticSource([b, c]),
    ])

    signals = await detector.detect()

    assert signals == [a, c]


def test_scenarios_are_complete() -> None:
    assert set(SIMULATION_SCENARIOS) == {"service_down", "high_latency", "memory_exhaustion"}
    for scenario in SIMULATION_SCENARIOS.values():
        assert scenario.signals()
        assert scenario.services


def test_unknown_scenario_lists_available() -> None:
    with pytest.raises(KeyError, match="service_down"):
        get_scenario("meteor_strike")
