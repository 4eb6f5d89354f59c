"""
Remediation action execution.

``ActionExecutor`` turns a decision (action type, target service, reasoning)
into an executed ``RemediationAction``: it calls the compute target, records
whether the platform accepted the operation, appends the action to the
incident and persists it. Neither a compute failure nor a store failure
stops the caller; both are recorded and logged.

Example:
    >>> executor = ActionExecutor(compute, store, redundancy_target=2)
    >>> action = await executor.execute(
    ...     incident, ActionType.RESTART, service,
    ...     reasoning="standard first response",
    ... )
    >>> action.success
    True
"""
from typing import Optional

from ..collaborators import ErrorKind, guard
from ..constants import DEFAULT_REDUNDANCY_TARGET
from ..integrations.compute import ComputeTarget
from ..logging_context import get_logger
from ..models import ActionType, Incident, RemediationAction, ServiceInfo
from ..storage.base import IncidentStore

logger = get_logger(__name__)

NO_TARGET = "none"


def describe_action(
    action_type: ActionType,
    target: str,
    incident: Incident,
    redundancy_target: int = DEFAULT_REDUNDANCY_TARGET,
) -> str:
    """Human-readable description used in logs, the store and post-mortems."""
    if action_type == ActionType.RESTART:
        return f"Restarted service: {target}"
    if action_type == ActionType.SCALE:
        return f"Scaled {target} to {redundancy_target} instances"
    if action_type == ActionType.RESUME:
        return f"Resumed suspended service: {target}"
    if action_type == ActionType.ALERT:
        return f"Alert: {incident.title} - no auto-remediation available"
    return "Info-level incident, monitoring only"


class ActionExecutor:
    """Executes and records remediation actions."""

    def __init__(
        self,
        compute: ComputeTarget,
        store: IncidentStore,
        redundancy_target: int = DEFAULT_REDUNDANCY_TARGET,
    ):
        self.compute = compute
        self.store = store
        self.redundancy_target = redundancy_target

    async def _perform(self, action_type: ActionType, service: ServiceInfo) -> bool:
        if action_type == ActionType.RESTART:
            call = self.compute.restart(service.id)
        elif action_type == ActionType.SCALE:
            call = self.compute.scale(service.id, self.redundancy_target)
        elif action_type == ActionType.RESUME:
            call = self.compute.resume(service.id)
        else:
            return True

        outcome = await guard(
            call,
            fallback=False,
            kind=ErrorKind.ACTION_EXECUTION_FAILURE,
            operation=f"compute.{action_type.value}({service.name})",
        )
        return bool(outcome.value)

    async def execute(
        self,
        incident: Incident,
        action_type: ActionType,
        service: Optional[ServiceInfo] = None,
        reasoning: Optional[str] = None,
        target_name: Optional[str] = None,
    ) -> RemediationAction:
        """
        Execute one action and append it to ``incident``.

        Args:
            incident: Incident being remediated
            action_type: What to do
            service: Live service to act on; required for restart, scale
                and resume
            reasoning: Why this action was chosen
            target_name: Target recorded for alert and noop actions

        Returns:
            The executed action, already appended and persisted
        """
        if service is not None:
            target = service.name
            success = await self._perform(action_type, service)
        else:
            target = target_name or NO_TARGET
            success = True

        action = incident.add_action(RemediationAction(
            type=action_type,
            target_service=target,
            target_id=service.id if service is not None else None,
            description=describe_action(action_type, target, incident, self.redundancy_target),
            reasoning=reasoning,
            success=success,
        ))

        stored = await guard(
            self.store.add_remediation(incident.id, action),
            fallback=False,
            operation="store.add_remediation",
        )
        if not stored.value:
            logger.warning(f"Remediation {action.id} was not persisted")

        logger.info(
            f"{action.type.value}: {action.description} -> "
            f"{'OK' if action.success else 'FAILED'}"
        )
        return action
