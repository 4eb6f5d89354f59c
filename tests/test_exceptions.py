"""
Tests for exception handling and custom exception types.

Verifies that specific exceptions are raised appropriately.
"""

import pytest

from ghost_operator.exceptions import (
    CollaboratorError,
    ComputeTargetError,
    ConfigurationError,
    DetectionError,
    GhostOperatorError,
    IncidentInvariantError,
    InvalidConfigError,
    MemorySearchError,
    MissingConfigError,
    StoreUnavailableError,
)
from ghost_operator.integrations.compute import SimulatedComputeTarget
from ghost_operator.integrations.detection import ComputeHealthSource
from ghost_operator.storage.incident_store import SQLiteIncidentStore


def test_exception_hierarchy():
    """Test that all exceptions inherit from GhostOperatorError."""
    for exc in (
        IncidentInvariantError,
        CollaboratorError,
        DetectionError,
        StoreUnavailableError,
        MemorySearchError,
        ComputeTargetError,
        ConfigurationError,
        InvalidConfigError,
        MissingConfigError,
    ):
        assert issubclass(exc, GhostOperatorError)


def test_collaborator_errors_share_base():
    for exc in (DetectionError, StoreUnavailableError, MemorySearchError, ComputeTargetError):
        assert issubclass(exc, CollaboratorError)
    assert not issubclass(IncidentInvariantError, CollaboratorError)


def test_config_errors_share_base():
    assert issubclass(InvalidConfigError, ConfigurationError)
    assert issubclass(MissingConfigError, ConfigurationError)


def test_store_unavailable_on_bad_path(tmp_path):
    """Test StoreUnavailableError raised when the database cannot be opened."""
    with pytest.raises(StoreUnavailableError, match="Cannot open incident store"):
        SQLiteIncidentStore(tmp_path / "missing" / "incidents.db")


@pytest.mark.asyncio
async def test_health_source_wraps_compute_errors():
    """Test DetectionError raised when the compute API fails."""

    class FailingCompute(SimulatedComputeTarget):
        async def list_services(self):
            raise ComputeTargetError("GET /services returned HTTP 503")

    with pytest.raises(DetectionError, match="Health check failed"):
        await ComputeHealthSource(FailingCompute()).detect()
