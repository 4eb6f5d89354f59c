"""
External platform integrations for Ghost Operator.

Compute targets, detection sources and the built-in simulation scenarios.
"""

from .compute import ComputeTarget, RenderComputeTarget, SimulatedComputeTarget
from .detection import (
    CompositeDetector,
    ComputeHealthSource,
    DetectionSource,
    StaticSource,
)
from .simulation import SIMULATION_SCENARIOS, Scenario, get_scenario

__all__ = [
    "ComputeTarget",
    "RenderComputeTarget",
    "SimulatedComputeTarget",
    "DetectionSource",
    "ComputeHealthSource",
    "StaticSource",
    "CompositeDetector",
    "SIMULATION_SCENARIOS",
    "Scenario",
    "get_scenario",
]
