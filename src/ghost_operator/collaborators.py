"""
Failure isolation at collaborator boundaries.

Every call the decision engine makes to a store, memory search, compute
target or detection source goes through ``guard``. The call's exception (if
any) is logged and converted into a ``CallOutcome`` carrying a fallback value
and an ``ErrorKind``; the engine branches on the outcome, never on an
exception.

Example:
    >>> outcome = await guard(
    ...     compute.restart(service.id),
    ...     fallback=False,
    ...     kind=ErrorKind.ACTION_EXECUTION_FAILURE,
    ...     operation="compute.restart",
    ... )
    >>> if not outcome.value:
    ...     ...
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Generic, Optional, TypeVar

from .exceptions import IncidentInvariantError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class ErrorKind(Enum):
    """Failure taxonomy for the decision engine."""
    COLLECTOR_FAILURE = "collector_failure"
    CLASSIFICATION_AMBIGUITY = "classification_ambiguity"
    ACTION_EXECUTION_FAILURE = "action_execution_failure"
    VALIDATION_INCONCLUSIVE = "validation_inconclusive"


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Result of a guarded collaborator call."""

    value: T
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None


async def guard(
    call: Awaitable[T],
    fallback: T,
    kind: ErrorKind = ErrorKind.COLLECTOR_FAILURE,
    operation: str = "collaborator call",
) -> CallOutcome[T]:
    """
    Await a collaborator call, converting any failure into a ``CallOutcome``.

    Internal invariant violations are re-raised; they indicate a bug, not a
    degraded collaborator.

    Args:
        call: Awaitable produced by the collaborator method
        fallback: Value used when the call fails
        kind: Error kind recorded on failure
        operation: Name used in log messages

    Returns:
        CallOutcome with the call's value, or the fallback and error details
    """
    try:
        value = await call
    except IncidentInvariantError:
        raise
    except Exception as e:
        logger.error(f"{operation} failed ({kind.value}): {e}")
        return CallOutcome(value=fallback, error_kind=kind, error=str(e))

    if value is None and fallback is not None:
        return CallOutcome(value=fallback)
    return CallOutcome(value=value)
