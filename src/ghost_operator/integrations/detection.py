"""
Detection sources.

A ``DetectionSource`` produces one batch of ``DetectionSignal`` per cycle.
``CompositeDetector`` fans out across several sources concurrently; a
failing source contributes nothing and does not affect the others.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Sequence

from ..constants import HEALTH_CHECK_SOURCE
from ..exceptions import ComputeTargetError, DetectionError
from ..models import DetectionSignal
from ..reasoning.fuser import dedupe_signals
from .compute import ComputeTarget

logger = logging.getLogger(__name__)


class DetectionSource(ABC):
    """Contract for anything that can report signals."""

    name: str = "source"

    @abstractmethod
    async def detect(self) -> List[DetectionSignal]:
        """Run one detection cycle."""


class ComputeHealthSource(DetectionSource):
    """Emits a health-check signal for every service that is not active."""

    name = HEALTH_CHECK_SOURCE

    def __init__(self, compute: ComputeTarget):
        self.compute = compute

    async def detect(self) -> List[DetectionSignal]:
        try:
            services = await self.compute.list_services()
        except ComputeTargetError as e:
            raise DetectionError(f"Health check failed: {e}") from e

        signals = []
        for svc in services:
            if svc.is_healthy:
                continue
            signals.append(DetectionSignal(
                source=HEALTH_CHECK_SOURCE,
                title=f"Service unhealthy: {svc.name}",
                summary=f'Render service "{svc.name}" ({svc.id}) is {svc.status}',
                raw=svc.model_dump(),
            ))

        logger.debug(f"Health check found {len(signals)} unhealthy service(s)")
        return signals


class StaticSource(DetectionSource):
    """Returns a pre-built batch, e.g. a simulation scenario."""

    name = "static"

    def __init__(self, signals: Iterable[DetectionSignal]):
        self.signals = list(signals)

    async def detect(self) -> List[DetectionSignal]:
        return list(self.signals)


class CompositeDetector(DetectionSource):
    """
    Runs several sources concurrently and merges their signals.

    Signals keep source order, then arrival order within a source, and are
    deduplicated by URL across sources.
    """

    name = "composite"

    def __init__(self, sources: Sequence[DetectionSource]):
        self.sources = list(sources)

    async def detect(self) -> List[DetectionSignal]:
        results = await asyncio.gather(
            *(source.detect() for source in self.sources),
            return_exceptions=True,
        )

        signals: List[DetectionSignal] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, BaseException):
                logger.error(f"Detection source {source.name} failed: {result}")
                continue
            signals.extend(result)

        unique = dedupe_signals(signals)
        if unique:
            logger.info(f"Detected {len(unique)} signal(s) from {len(self.sources)} source(s)")
        return unique
