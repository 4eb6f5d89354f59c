"""
Data models for Ghost Operator using Pydantic for validation.
"""
import uuid
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from typing import Any, Dict, List, Optional, Set

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import IncidentInvariantError


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


@lru_cache(maxsize=1024)
def _parse_timestamp_cached(timestamp_str: str) -> Optional[datetime]:
    """Parse a timestamp string (cached); ``None`` when unparseable."""
    try:
        parsed = date_parser.parse(timestamp_str)
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce_timestamp(value: Any) -> Any:
    """Normalize strings and naive datetimes to aware UTC datetimes."""
    if isinstance(value, str):
        parsed = _parse_timestamp_cached(value)
        return parsed if parsed is not None else value
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Severity(str, Enum):
    """Incident severity."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ActionType(str, Enum):
    """Kinds of remediation action."""
    RESTART = "restart"
    SCALE = "scale"
    RESUME = "resume"
    ALERT = "alert"
    NOOP = "noop"

    @property
    def is_terminal(self) -> bool:
        """Terminal actions end a chain and have no health to validate."""
        return self in (ActionType.ALERT, ActionType.NOOP)

    @property
    def is_validatable(self) -> bool:
        """Actions whose effect can be checked against live service health."""
        return self in (ActionType.RESTART, ActionType.SCALE, ActionType.RESUME)


class DetectionSignal(BaseModel):
    """
    A single observation from one source. Immutable once produced.

    Attributes:
        source: Producer tag (e.g. ``render_health``, ``tavily``)
        title: Short headline
        summary: Free-text body
        url: Optional link; used for deduplication
        timestamp: When the signal was observed
        raw: Original payload from the source
    """
    model_config = ConfigDict(frozen=True)

    source: str
    title: str
    summary: str = ""
    url: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)
    raw: Optional[Dict[str, Any]] = None

    @field_validator('timestamp', mode='before')
    @classmethod
    def parse_timestamp(cls, v: Any) -> Any:
        return coerce_timestamp(v)

    @property
    def text(self) -> str:
        return f"{self.title} {self.summary}"


class RemediationAction(BaseModel):
    """
    One operation taken (or attempted) against a compute target.

    ``validated`` stays ``None`` until the validation loop has checked the
    target; ``False`` means the target was checked and found unhealthy.
    """
    id: str = Field(default_factory=new_id)
    type: ActionType
    target_service: str
    target_id: Optional[str] = None
    description: str
    reasoning: Optional[str] = None
    executed_at: datetime = Field(default_factory=utcnow)
    success: bool = True
    validated: Optional[bool] = None

    @field_validator('executed_at', mode='before')
    @classmethod
    def parse_executed_at(cls, v: Any) -> Any:
        return coerce_timestamp(v)


class PastRemediation(BaseModel):
    """Read-only aggregate of a historical action, used to compute rates."""
    model_config = ConfigDict(frozen=True)

    type: ActionType
    success: bool


class PostMortem(BaseModel):
    """Structured narrative generated once per incident."""
    model_config = ConfigDict(frozen=True)

    incident_id: str
    title: str
    timeline: str
    root_cause: str
    impact: str
    remediation: str
    lessons_learned: str
    generated_at: datetime

    def narrative(self) -> Dict[str, str]:
        """The text sections, without identity or timestamp."""
        return {
            "title": self.title,
            "timeline": self.timeline,
            "root_cause": self.root_cause,
            "impact": self.impact,
            "remediation": self.remediation,
            "lessons_learned": self.lessons_learned,
        }


class Incident(BaseModel):
    """
    A fused, classified suspected failure event.

    Created once per signal batch and mutated in place by the strategy
    engine, the validation loop and the post-mortem synthesizer.

    Attributes:
        id: Unique identifier, generated once
        title: Headline taken from the primary signal
        summary: Per-source summaries joined by newlines
        severity: Classified severity, never lowered
        detected_at: Timestamp of the primary signal
        services: Affected service/vendor names
        errors: Distinct error markers found in the signal text
        root_cause: Best-guess cause, ``None`` while under investigation
        signals: Source signals, in arrival order (never empty)
        remediation_actions: Actions in execution order
        resolved_at: Set only when recovery was observed
        post_mortem: Set once by the synthesizer
    """
    id: str = Field(default_factory=new_id)
    title: str
    summary: str = ""
    severity: Severity
    detected_at: datetime = Field(default_factory=utcnow)
    services: Set[str] = Field(default_factory=set)
    errors: Set[str] = Field(default_factory=set)
    root_cause: Optional[str] = None
    signals: List[DetectionSignal] = Field(default_factory=list)
    remediation_actions: List[RemediationAction] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None
    post_mortem: Optional[PostMortem] = None

    @field_validator('detected_at', 'resolved_at', mode='before')
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return coerce_timestamp(v)

    @model_validator(mode='after')
    def require_signals(self) -> 'Incident':
        if not self.signals:
            raise IncidentInvariantError(
                "An incident cannot be constructed from zero signals"
            )
        return self

    @property
    def primary_service(self) -> str:
        """First affected service in sorted order, or ``unknown``."""
        return sorted(self.services)[0] if self.services else "unknown"

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def add_action(self, action: RemediationAction) -> RemediationAction:
        self.remediation_actions.append(action)
        return action


class HistoricalIncident(BaseModel):
    """
    A past incident as read back from the store.

    Carries only what the history advisor needs; the original signals are
    not persisted.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    severity: Severity
    detected_at: datetime
    services: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    root_cause: Optional[str] = None
    remediations: List[PastRemediation] = Field(default_factory=list)
    resolved_at: Optional[datetime] = None

    @field_validator('detected_at', 'resolved_at', mode='before')
    @classmethod
    def parse_times(cls, v: Any) -> Any:
        return coerce_timestamp(v)


class ServiceInfo(BaseModel):
    """A service as reported by the compute target."""
    id: str
    name: str
    status: str = "active"
    type: Optional[str] = None
    url: Optional[str] = None

    @property
    def is_healthy(self) -> bool:
        return self.status == "active"

    @property
    def is_suspended(self) -> bool:
        return self.status == "suspended"


class MemoryHit(BaseModel):
    """A memory search result."""
    title: str = "Untitled"
    content: str = ""
    score: float = 0.0


class MemoryDocument(BaseModel):
    """A document published to memory search."""
    title: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
