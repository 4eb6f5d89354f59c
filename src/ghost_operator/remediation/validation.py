"""
Post-remediation validation and escalation.

After a configurable delay the loop re-checks every service whose latest
validatable action was a restart, scale or resume:

- service missing from the listing: inconclusive, left unvalidated
- service ``active``: action validated
- anything else: action marked unvalidated and the chain escalates one step

Escalation ladder::

    resume  -> restart
    restart -> scale
    scale   -> alert   (terminal, manual intervention)

Escalation actions are executed immediately and are not re-validated in the
same run. The incident is resolved only when nothing checked was unhealthy,
nothing was inconclusive and no alert is pending.

The wait runs through an injectable sleeper and can be cut short with a
``CancellationToken``; a cancelled validation leaves the incident untouched.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional

from ..collaborators import ErrorKind, guard
from ..constants import DEFAULT_VALIDATION_DELAY_SECONDS
from ..integrations.compute import ComputeTarget
from ..logging_context import get_logger
from ..models import ActionType, Incident, RemediationAction, ServiceInfo, utcnow
from ..storage.base import IncidentStore
from .actions import ActionExecutor

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]

ESCALATION_LADDER: Dict[ActionType, ActionType] = {
    ActionType.RESUME: ActionType.RESTART,
    ActionType.RESTART: ActionType.SCALE,
    ActionType.SCALE: ActionType.ALERT,
}

ESCALATION_REASONS: Dict[ActionType, str] = {
    ActionType.RESUME: "escalation after failed resume",
    ActionType.RESTART: "escalation after failed restart",
    ActionType.SCALE: "escalation after failed scale, manual intervention required",
}


class CancellationToken:
    """Cooperative cancellation for the validation wait."""

    def __init__(self):
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ValidationReport:
    """
    Outcome of one validation pass.

    Attributes:
        healthy: Every checked service was active and none was inconclusive
        escalated: At least one escalation action was executed
        checked: Names of services whose health was checked
        inconclusive: Names of services that could not be checked
        cancelled: The wait was cancelled before any check ran
        escalations: Escalation actions executed, in order
    """
    healthy: bool = False
    escalated: bool = False
    checked: List[str] = field(default_factory=list)
    inconclusive: List[str] = field(default_factory=list)
    cancelled: bool = False
    escalations: List[RemediationAction] = field(default_factory=list)


def latest_validatable_actions(incident: Incident) -> Dict[str, RemediationAction]:
    """Latest restart/scale/resume per target, in first-seen target order."""
    latest: Dict[str, RemediationAction] = {}
    for action in incident.remediation_actions:
        if action.type.is_validatable:
            latest[action.target_service] = action
    return latest


class ValidationLoop:
    """
    Validates remediation and escalates where it did not work.

    Example:
        >>> loop = ValidationLoop(compute, store, delay_seconds=0)
        >>> report = await loop.validate(incident)
        >>> report.healthy, incident.is_resolved
        (True, True)
    """

    def __init__(
        self,
        compute: ComputeTarget,
        store: IncidentStore,
        executor: ActionExecutor,
        delay_seconds: float = DEFAULT_VALIDATION_DELAY_SECONDS,
        sleeper: Sleeper = asyncio.sleep,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.compute = compute
        self.store = store
        self.executor = executor
        self.delay_seconds = delay_seconds
        self.sleeper = sleeper
        self.clock = clock

    async def _wait(self, token: CancellationToken) -> bool:
        """Sleep for the delay; False if cancelled first."""
        if token.cancelled:
            return False
        if self.delay_seconds <= 0:
            return True

        sleep_task = asyncio.ensure_future(self.sleeper(self.delay_seconds))
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({sleep_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleep_task, cancel_task):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleep_task, cancel_task, return_exceptions=True)

        return not token.cancelled

    async def _record(self, action: RemediationAction, validated: bool) -> None:
        action.validated = validated
        await guard(
            self.store.update_validation(action.id, validated),
            fallback=False,
            operation="store.update_validation",
        )

    async def validate(
        self,
        incident: Incident,
        token: Optional[CancellationToken] = None,
    ) -> ValidationReport:
        """
        Wait, re-check health, escalate and decide resolution.

        Args:
            incident: Incident with remediation actions already executed
            token: Optional cancellation token for the wait

        Returns:
            ValidationReport describing the pass
        """
        token = token or CancellationToken()
        report = ValidationReport()

        logger.info(f"Validating remediation in {self.delay_seconds:g}s")
        if not await self._wait(token):
            logger.info("Validation cancelled; incident left unresolved")
            report.cancelled = True
            return report

        targets = latest_validatable_actions(incident)
        live: Dict[str, ServiceInfo] = {}
        if targets:
            listing = await guard(
                self.compute.list_services(),
                fallback=[],
                kind=ErrorKind.VALIDATION_INCONCLUSIVE,
                operation="compute.list_services",
            )
            live = {svc.name: svc for svc in listing.value}

        unhealthy = False
        for target, action in targets.items():
            service = live.get(target)
            if service is None:
                logger.warning(
                    f"Service {target} not found on re-check "
                    f"({ErrorKind.VALIDATION_INCONCLUSIVE.value})"
                )
                report.inconclusive.append(target)
                continue

            report.checked.append(target)
            if service.is_healthy:
                await self._record(action, True)
                logger.info(f"{target} is healthy after {action.type.value}")
                continue

            unhealthy = True
            await self._record(action, False)
            next_type = ESCALATION_LADDER[action.type]
            logger.warning(
                f"{target} still {service.status} after {action.type.value}, "
                f"escalating to {next_type.value}"
            )
            escalation = await self.executor.execute(
                incident,
                next_type,
                service if not next_type.is_terminal else None,
                reasoning=ESCALATION_REASONS[action.type],
                target_name=target,
            )
            report.escalations.append(escalation)

        report.escalated = bool(report.escalations)
        report.healthy = not unhealthy and not report.inconclusive

        alert_pending = any(a.type == ActionType.ALERT for a in incident.remediation_actions)
        if report.healthy and not alert_pending:
            incident.resolved_at = self.clock()
            await guard(
                self.store.mark_resolved(incident.id, incident.resolved_at),
                fallback=False,
                operation="store.mark_resolved",
            )
            logger.info(f"Validation passed, incident {incident.id} resolved")
        elif report.escalated:
            logger.info("Validation failed, escalated with follow-up actions")
        else:
            logger.info("Validation incomplete, incident left open")

        return report
