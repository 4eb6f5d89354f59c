"""
Custom exception types for Ghost Operator.

Collaborator failures are caught at the call boundary and converted into
structured outcomes (see ``ghost_operator.collaborators``); the classes here
name what went wrong so the boundary can log it precisely. The only error
that is allowed to propagate through the decision engine is
``IncidentInvariantError``.
"""


class GhostOperatorError(Exception):
    """Base exception for all Ghost Operator errors."""
    pass


# Internal invariant violations
class IncidentInvariantError(GhostOperatorError):
    """An incident was built in a state the engine must never produce."""
    pass


# Collaborator errors
class CollaboratorError(GhostOperatorError):
    """Base exception for failures raised by an external collaborator."""
    pass


class DetectionError(CollaboratorError):
    """A detection source could not produce signals."""
    pass


class StoreUnavailableError(CollaboratorError):
    """The incident store could not be reached or rejected a write."""
    pass


class MemorySearchError(CollaboratorError):
    """The memory search service failed."""
    pass


class ComputeTargetError(CollaboratorError):
    """The compute platform API returned an error."""
    pass


# Configuration errors
class ConfigurationError(GhostOperatorError):
    """Base exception for configuration errors."""
    pass


class InvalidConfigError(ConfigurationError):
    """Invalid configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Required configuration missing."""
    pass


__all__ = [
    "GhostOperatorError",
    "IncidentInvariantError",
    "CollaboratorError",
    "DetectionError",
    "StoreUnavailableError",
    "MemorySearchError",
    "ComputeTargetError",
    "ConfigurationError",
    "InvalidConfigError",
    "MissingConfigError",
]
