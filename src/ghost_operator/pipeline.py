"""
End-to-end incident pipeline.

One run: detect -> fuse and classify -> store -> advise -> remediate ->
validate and escalate -> post-mortem. Runs never overlap; an invocation
while another is in flight returns immediately with outcome ``busy``.

Progress is reported as ``PipelineNotice`` objects to registered listeners
and kept in a bounded ``ActivityLog``.

Example:
    >>> pipeline = IncidentPipeline(detector, store, memory, compute)
    >>> pipeline.add_listener(lambda notice: print(notice.type))
    >>> result = await pipeline.run()
    >>> result.outcome
    'completed'
"""
import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence

from .collaborators import guard
from .config import OperatorConfig
from .history.advisor import Advisory, HistoryAdvisor
from .integrations.compute import ComputeTarget
from .integrations.detection import DetectionSource
from .logging_context import LoggingContext, get_logger
from .models import DetectionSignal, Incident, new_id, utcnow
from .reasoning.fuser import SignalFuser
from .remediation.actions import ActionExecutor
from .remediation.strategy import StrategyEngine
from .remediation.validation import CancellationToken, Sleeper, ValidationLoop, ValidationReport
from .reporting.postmortem import PostMortemSynthesizer
from .storage.base import IncidentStore, MemorySearch

logger = get_logger(__name__)

OUTCOME_NO_SIGNALS = "no_signals"
OUTCOME_NO_INCIDENT = "no_incident"
OUTCOME_COMPLETED = "completed"
OUTCOME_BUSY = "busy"


@dataclass(frozen=True)
class PipelineNotice:
    """A progress event emitted during a run."""
    type: str
    payload: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class ActivityEntry:
    stage: str
    message: str
    timestamp: datetime = field(default_factory=utcnow)
    data: Any = None


class ActivityLog:
    """Bounded, in-order record of pipeline activity."""

    def __init__(self, maxlen: int = 500):
        self._entries: Deque[ActivityEntry] = deque(maxlen=maxlen)

    def record(self, stage: str, message: str, data: Any = None) -> ActivityEntry:
        entry = ActivityEntry(stage=stage, message=message, data=data)
        self._entries.append(entry)
        logger.info(f"[{stage}] {message}")
        return entry

    def recent(self, limit: int = 100) -> List[ActivityEntry]:
        """Most recent entries, newest first."""
        return list(reversed(self._entries))[:limit]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)


@dataclass
class PipelineResult:
    """What one run did."""
    outcome: str
    run_id: str
    incident: Optional[Incident] = None
    advisory: Optional[Advisory] = None
    validation: Optional[ValidationReport] = None
    signal_count: int = 0

    @property
    def completed(self) -> bool:
        return self.outcome == OUTCOME_COMPLETED


Listener = Callable[[PipelineNotice], Any]


class IncidentPipeline:
    """
    Orchestrates the decision engine over its collaborators.

    The pipeline owns the in-flight guard; the engine components hold no
    state between runs beyond their fixed rule tables.
    """

    def __init__(
        self,
        detector: DetectionSource,
        store: IncidentStore,
        memory: MemorySearch,
        compute: ComputeTarget,
        config: Optional[OperatorConfig] = None,
        sleeper: Sleeper = asyncio.sleep,
    ):
        self.config = config or OperatorConfig()
        self.detector = detector
        self.store = store

        executor = ActionExecutor(compute, store, self.config.redundancy_target)
        self.fuser = SignalFuser()
        self.advisor = HistoryAdvisor(store, memory, self.config.memory_search_limit)
        self.strategy = StrategyEngine(compute, store, executor=executor)
        self.validator = ValidationLoop(
            compute, store, executor,
            delay_seconds=self.config.validation_delay_seconds,
            sleeper=sleeper,
        )
        self.reporter = PostMortemSynthesizer(store, memory)

        self.activity = ActivityLog(self.config.activity_log_size)
        self._listeners: List[Listener] = []
        self._lock = asyncio.Lock()
        self._token: Optional[CancellationToken] = None

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def _emit(self, notice_type: str, **payload: Any) -> None:
        notice = PipelineNotice(type=notice_type, payload=payload)
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception as e:
                logger.error(f"Listener failed on {notice_type}: {e}")

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> None:
        """Cut short the validation wait of the run in flight, if any."""
        if self._token is not None:
            self._token.cancel()

    async def run(self, signals: Optional[Sequence[DetectionSignal]] = None) -> PipelineResult:
        """
        Execute one pipeline run.

        Args:
            signals: Pre-built signals; when omitted the detector is polled

        Returns:
            PipelineResult with the outcome and, if one was created, the incident
        """
        run_id = new_id()
        if self._lock.locked():
            logger.info("Pipeline run already in flight, skipping")
            return PipelineResult(outcome=OUTCOME_BUSY, run_id=run_id)

        async with self._lock:
            self._token = CancellationToken()
            try:
                with LoggingContext(run_id=run_id):
                    return await self._run(run_id, signals, self._token)
            finally:
                self._token = None

    async def _run(
        self,
        run_id: str,
        signals: Optional[Sequence[DetectionSignal]],
        token: CancellationToken,
    ) -> PipelineResult:
        self._emit("pipeline_start", run_id=run_id)

        self.activity.record("detector", "Starting detection cycle...")
        if signals is None:
            detected = await guard(
                self.detector.detect(), fallback=[], operation="detector.detect"
            )
            signals = detected.value
        signals = list(signals)
        self._emit("detection_complete", signal_count=len(signals))

        if not signals:
            self.activity.record("detector", "No anomalies detected")
            self._emit("pipeline_complete", result=OUTCOME_NO_SIGNALS)
            return PipelineResult(outcome=OUTCOME_NO_SIGNALS, run_id=run_id)

        self.activity.record(
            "detector", f"Detected {len(signals)} signal(s)", [s.title for s in signals]
        )

        self.activity.record("analyzer", "Analyzing signals...")
        incident = self.fuser.fuse(signals)
        self._emit("analysis_complete", incident_id=incident.id if incident else None)

        if incident is None:
            self.activity.record("analyzer", "No actionable incident from signals")
            self._emit("pipeline_complete", result=OUTCOME_NO_INCIDENT)
            return PipelineResult(
                outcome=OUTCOME_NO_INCIDENT, run_id=run_id, signal_count=len(signals)
            )

        with LoggingContext(incident_id=incident.id):
            return await self._handle(run_id, incident, len(signals), token)

    async def _handle(
        self,
        run_id: str,
        incident: Incident,
        signal_count: int,
        token: CancellationToken,
    ) -> PipelineResult:
        self.activity.record(
            "analyzer",
            f"Incident created: [{incident.severity.value}] {incident.title}",
            {'id': incident.id},
        )
        self._emit("incident", incident=incident)

        stored = await guard(
            self.store.create_incident(incident),
            fallback=False,
            operation="store.create_incident",
        )
        if stored.value:
            self.activity.record("system", f"Incident stored: {incident.id}")

        advisory = await self.advisor.advise(incident)

        self.activity.record("remediator", f"Remediating incident: {incident.id}")
        actions = await self.strategy.remediate(incident, advisory)
        for action in actions:
            self._emit("remediation_action", action=action)

        self.activity.record(
            "remediator",
            f"Validating remediation (re-checking service health in "
            f"{self.validator.delay_seconds:g}s)...",
        )
        validation = await self.validator.validate(incident, token)
        for action in validation.escalations:
            self._emit("remediation_action", action=action)
        self._emit(
            "validation_complete",
            healthy=validation.healthy,
            escalated=validation.escalated,
            cancelled=validation.cancelled,
            resolved_at=incident.resolved_at,
        )

        if validation.cancelled:
            self.activity.record("remediator", "Validation cancelled")
        elif incident.is_resolved:
            self.activity.record("remediator", f"Validation passed - incident {incident.id} resolved")
        elif validation.escalated:
            self.activity.record("remediator", "Validation failed - escalated with follow-up actions")
        else:
            self.activity.record("remediator", "Validation incomplete - incident left open")

        self.activity.record("reporter", f"Generating post-mortem for incident: {incident.id}")
        post_mortem = await self.reporter.generate(incident)
        self.activity.record("reporter", f"Post-mortem generated: {post_mortem.title}")
        self._emit("postmortem_complete", incident_id=incident.id)

        self._emit("pipeline_complete", result=OUTCOME_COMPLETED, incident_id=incident.id)

        return PipelineResult(
            outcome=OUTCOME_COMPLETED,
            run_id=run_id,
            incident=incident,
            advisory=advisory,
            validation=validation,
            signal_count=signal_count,
        )
