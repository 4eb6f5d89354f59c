"""
Remediation strategy selection.

Strategy table, evaluated once per live service matched to the incident
(first match wins):

    ====  ===========================================  ==================
    prio  condition                                    actions
    ====  ===========================================  ==================
    20    matched service is suspended                 resume
    30    warning and precedent recommends escalation  restart, scale
    40    critical                                     restart, scale
    50    warning                                      restart
    ====  ===========================================  ==================

Incidents of severity ``info`` never reach the table: they get a single
``noop`` and nothing else. When no live service matches, a single ``alert``
is raised for the incident's primary service.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from ..collaborators import guard
from ..constants import DEFAULT_REDUNDANCY_TARGET
from ..integrations.compute import ComputeTarget
from ..history.advisor import Advisory
from ..logging_context import get_logger
from ..models import ActionType, Incident, RemediationAction, ServiceInfo, Severity
from ..reasoning.rules import Rule, RuleTable
from ..storage.base import IncidentStore
from .actions import NO_TARGET, ActionExecutor

logger = get_logger(__name__)


@dataclass(frozen=True)
class StrategyContext:
    severity: Severity
    service: ServiceInfo
    advisory: Advisory


@dataclass(frozen=True)
class Plan:
    """Ordered action types to run against one service, with the reason."""
    steps: Tuple[ActionType, ...]
    reasoning: str


INFO_PLAN = Plan((ActionType.NOOP,), "monitoring only")
NO_MATCH_PLAN = Plan((ActionType.ALERT,), "no matching compute service, manual follow-up")

STRATEGY_RULES: RuleTable[StrategyContext, Plan] = RuleTable(
    "strategy",
    [
        Rule(20, "suspended-service",
             lambda ctx: ctx.service.is_suspended,
             Plan((ActionType.RESUME,), "restore availability")),
        Rule(30, "warning-with-precedent",
             lambda ctx: (ctx.severity == Severity.WARNING
                          and ctx.advisory.recommends_escalation),
             Plan((ActionType.RESTART, ActionType.SCALE),
                  "escalate preemptively based on precedent")),
        Rule(40, "critical",
             lambda ctx: ctx.severity == Severity.CRITICAL,
             Plan((ActionType.RESTART, ActionType.SCALE),
                  "standard critical-incident protocol")),
        Rule(50, "warning",
             lambda ctx: ctx.severity == Severity.WARNING,
             Plan((ActionType.RESTART,), "standard first response")),
    ],
)


def names_match(incident_service: str, live_name: str) -> bool:
    """Either name contains the other, case-insensitive."""
    a, b = incident_service.lower(), live_name.lower()
    if not a or not b:
        return False
    return a in b or b in a


def match_services(
    incident_services: Iterable[str],
    live_services: Sequence[ServiceInfo],
) -> List[ServiceInfo]:
    """
    Live services to remediate, each at most once.

    Incident services are visited in sorted order. Each takes the live
    service with the same name (case-insensitive) when there is one still
    free, otherwise the first free live service (in listing order) whose
    name matches.
    """
    matched: List[ServiceInfo] = []
    seen = set()
    for name in sorted(incident_services):
        free = [s for s in live_services if s.id not in seen]
        exact = [s for s in free if s.name.lower() == name.lower()]
        candidates = exact or [s for s in free if names_match(name, s.name)]
        if candidates:
            seen.add(candidates[0].id)
            matched.append(candidates[0])
    return matched


class StrategyEngine:
    """
    Chooses and executes the remediation chain for an incident.

    Example:
        >>> engine = StrategyEngine(compute, store)
        >>> actions = await engine.remediate(incident, advisory)
        >>> [a.type.value for a in actions]
        ['restart', 'scale']
    """

    def __init__(
        self,
        compute: ComputeTarget,
        store: IncidentStore,
        redundancy_target: int = DEFAULT_REDUNDANCY_TARGET,
        executor: Optional[ActionExecutor] = None,
    ):
        self.compute = compute
        self.store = store
        self.executor = executor or ActionExecutor(compute, store, redundancy_target)

    def plan_for(self, incident: Incident, service: ServiceInfo, advisory: Advisory) -> Optional[Plan]:
        ctx = StrategyContext(severity=incident.severity, service=service, advisory=advisory)
        rule = STRATEGY_RULES.first_match(ctx)
        if rule is None:
            return None
        logger.info(f"Strategy for {service.name}: rule '{rule.name}' ({rule.outcome.reasoning})")
        return rule.outcome

    async def _run_plan(
        self,
        incident: Incident,
        plan: Plan,
        service: Optional[ServiceInfo] = None,
        target_name: Optional[str] = None,
    ) -> List[RemediationAction]:
        actions = []
        for step in plan.steps:
            # A failed step is recorded; the chain continues.
            actions.append(await self.executor.execute(
                incident, step, service,
                reasoning=plan.reasoning,
                target_name=target_name,
            ))
        return actions

    async def remediate(self, incident: Incident, advisory: Advisory) -> List[RemediationAction]:
        """
        Execute the remediation chain and return the actions taken.

        Args:
            incident: Classified incident; actions are appended to it
            advisory: Precedent from the history advisor

        Returns:
            Actions in execution order
        """
        if incident.severity == Severity.INFO:
            return await self._run_plan(incident, INFO_PLAN, target_name=NO_TARGET)

        live = await guard(
            self.compute.list_services(),
            fallback=[],
            operation="compute.list_services",
        )
        matched = match_services(incident.services, live.value)

        actions: List[RemediationAction] = []
        for service in matched:
            plan = self.plan_for(incident, service, advisory)
            if plan is not None:
                actions.extend(await self._run_plan(incident, plan, service))

        if not actions:
            actions = await self._run_plan(
                incident, NO_MATCH_PLAN, target_name=incident.primary_service
            )

        logger.info(f"Executed {len(actions)} remediation action(s)")
        return actions
