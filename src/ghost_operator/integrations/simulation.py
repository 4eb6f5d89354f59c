"""
Built-in simulation scenarios.

Each scenario pairs a signal batch with the live services a simulated
compute target should report, so the whole pipeline can be exercised
without external systems.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..constants import HEALTH_CHECK_SOURCE
from ..models import DetectionSignal, ServiceInfo, utcnow


@dataclass(frozen=True)
class Scenario:
    """A named, replayable detection batch."""
    id: str
    name: str
    signal_specs: List[Dict[str, Any]]
    services: List[ServiceInfo] = field(default_factory=list)

    def signals(self) -> List[DetectionSignal]:
        """Fresh signals stamped with the current time."""
        now = utcnow()
        return [DetectionSignal(timestamp=now, **spec) for spec in self.signal_specs]


SIMULATION_SCENARIOS: Dict[str, Scenario] = {
    'service_down': Scenario(
        id='service_down',
        name='Service Down',
        signal_specs=[
            {
                'source': HEALTH_CHECK_SOURCE,
                'title': 'Service unhealthy: ghost-api',
                'summary': 'Render service "ghost-api" (srv-sim001) is suspended - 503 errors detected',
                'raw': {'id': 'srv-sim001', 'name': 'ghost-api', 'status': 'suspended'},
            },
            {
                'source': 'tavily',
                'title': 'Render platform outage reported',
                'summary': (
                    'Multiple users reporting 503 and 500 errors on Render-hosted services. '
                    'Render status page shows degraded performance.'
                ),
                'url': 'https://status.render.com',
            },
        ],
        services=[ServiceInfo(id='srv-sim001', name='ghost-api', status='suspended')],
    ),
    'high_latency': Scenario(
        id='high_latency',
        name='High Latency',
        signal_specs=[
            {
                'source': 'yutori',
                'title': 'Elevated latency on cloud services',
                'summary': (
                    'Latency spike detected across AWS us-east-1 region. Redis and Postgres '
                    'connections showing timeout and ETIMEDOUT errors. Services degraded.'
                ),
                'url': 'https://status.aws.amazon.com',
            },
            {
                'source': HEALTH_CHECK_SOURCE,
                'title': 'Service degraded: ghost-worker',
                'summary': 'Render service "ghost-worker" showing slow response times, elevated error rates',
                'raw': {'id': 'srv-sim002', 'name': 'ghost-worker', 'status': 'active'},
            },
        ],
        services=[ServiceInfo(id='srv-sim002', name='ghost-worker', status='active')],
    ),
    'memory_exhaustion': Scenario(
        id='memory_exhaustion',
        name='Memory Exhaustion',
        signal_specs=[
            {
                'source': HEALTH_CHECK_SOURCE,
                'title': 'Service critical: ghost-api',
                'summary': (
                    'Render service "ghost-api" (srv-sim003) is down - OOM killed. '
                    'Out of memory error detected. ENOMEM.'
                ),
                'raw': {'id': 'srv-sim003', 'name': 'ghost-api', 'status': 'suspended'},
            },
            {
                'source': 'tavily',
                'title': 'Memory exhaustion incident on Render',
                'summary': (
                    'Critical outage: service crashed due to memory exhaustion. '
                    'OOM killer triggered. Major impact on availability.'
                ),
            },
        ],
        services=[ServiceInfo(id='srv-sim003', name='ghost-api', status='suspended')],
    ),
}


def get_scenario(scenario_id: str) -> Scenario:
    """Look up a scenario; raises ``KeyError`` listing the known ids."""
    try:
        return SIMULATION_SCENARIOS[scenario_id]
    except KeyError:
        known = ", ".join(sorted(SIMULATION_SCENARIOS))
        raise KeyError(f"Unknown scenario '{scenario_id}' (available: {known})") from None
