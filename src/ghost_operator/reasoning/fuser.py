"""Signal fusion and incident classification.

A batch of detection signals is merged into one ``Incident``: affected
entities and error markers are extracted from the combined text, severity and
root cause are decided by ordered rule tables, and a title and summary are
chosen. Classification is a pure function of the signal text and sources;
the same batch always yields the same severity, services, errors and root
cause.

Severity precedence (first match wins):
    1. any critical keyword in the combined text -> ``critical``
    2. any signal from the direct health check -> ``warning``
    3. any warning keyword -> ``warning``
    4. otherwise -> ``info``

The table stops at the first rule that holds, so a critical keyword in any
signal wins regardless of the other signals.

Example:
    >>> fuser = SignalFuser()
    >>> incident = fuser.fuse(signals)
    >>> if incident is None:
    ...     print("nothing to do")
"""
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Sequence, Set
import logging

from ..collaborators import ErrorKind
from ..constants import (
    HEALTH_CHECK_SOURCE,
    SUMMARY_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TITLE_MIN_LENGTH,
)
from ..models import DetectionSignal, Incident, Severity
from . import catalog
from .rules import Rule, RuleTable, always, contains_any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalText:
    """Evaluation context for the classification tables."""
    text: str
    sources: FrozenSet[str]
    errors: FrozenSet[str]


SEVERITY_RULES: RuleTable[SignalText, Severity] = RuleTable(
    "severity",
    [
        Rule(10, "critical-keyword",
             lambda ctx: contains_any(ctx.text, catalog.CRITICAL_KEYWORDS),
             Severity.CRITICAL),
        Rule(20, "health-check-source",
             lambda ctx: HEALTH_CHECK_SOURCE in ctx.sources,
             Severity.WARNING),
        Rule(30, "warning-keyword",
             lambda ctx: contains_any(ctx.text, catalog.WARNING_KEYWORDS),
             Severity.WARNING),
        Rule(99, "no-keyword", always, Severity.INFO),
    ],
)

ROOT_CAUSE_RULES: RuleTable[SignalText, Optional[str]] = RuleTable(
    "root-cause",
    [
        Rule(10, "server-error-code",
             lambda ctx: any(catalog.SERVER_ERROR_CODE.match(e) for e in ctx.errors),
             "server-side error"),
        Rule(20, "timeout",
             lambda ctx: contains_any(ctx.text, catalog.TIMEOUT_CUES),
             "service timeout"),
        Rule(30, "memory",
             lambda ctx: contains_any(ctx.text, catalog.MEMORY_CUES),
             "memory exhaustion"),
        Rule(40, "disk",
             lambda ctx: contains_any(ctx.text, catalog.DISK_CUES),
             "disk exhaustion"),
        Rule(50, "dns",
             lambda ctx: contains_any(ctx.text, catalog.DNS_CUES),
             "DNS resolution failure"),
        Rule(60, "tls",
             lambda ctx: contains_any(ctx.text, catalog.TLS_CUES),
             "certificate issue"),
        Rule(70, "deployment",
             lambda ctx: contains_any(ctx.text, catalog.DEPLOY_CUES),
             "bad deployment"),
    ],
    default=None,
)


def dedupe_signals(signals: Iterable[DetectionSignal]) -> List[DetectionSignal]:
    """Drop signals whose URL was already seen; signals without URL are kept."""
    seen: Set[str] = set()
    unique: List[DetectionSignal] = []
    for signal in signals:
        if signal.url:
            if signal.url in seen:
                continue
            seen.add(signal.url)
        unique.append(signal)
    return unique


def combined_text(signals: Sequence[DetectionSignal]) -> str:
    return " ".join(s.text for s in signals)


def extract_services(text: str, signals: Sequence[DetectionSignal] = ()) -> Set[str]:
    """
    Known vendor/service names mentioned in ``text``.

    Health-check signals name the exact compute service in ``raw['name']``;
    that name is included as well.
    """
    lower = text.lower()
    services = {svc for svc in catalog.KNOWN_SERVICES if svc in lower}

    for signal in signals:
        if signal.source == HEALTH_CHECK_SOURCE and signal.raw:
            name = signal.raw.get('name')
            if name:
                services.add(str(name))

    return services


def extract_errors(text: str) -> Set[str]:
    """All distinct error markers found by the fixed pattern set."""
    errors: Set[str] = set()
    for pattern in catalog.ERROR_PATTERNS:
        errors.update(pattern.findall(text))
    return errors


def classify_severity(text: str, signals: Sequence[DetectionSignal]) -> Severity:
    ctx = SignalText(
        text=text,
        sources=frozenset(s.source for s in signals),
        errors=frozenset(),
    )
    return SEVERITY_RULES.evaluate(ctx)


def infer_root_cause(text: str, errors: Iterable[str]) -> Optional[str]:
    """Best-guess root cause, ``None`` when no cue matched."""
    ctx = SignalText(text=text, sources=frozenset(), errors=frozenset(errors))
    return ROOT_CAUSE_RULES.evaluate(ctx)


def select_title(signals: Sequence[DetectionSignal], services: Set[str]) -> str:
    primary = signals[0].title
    if len(primary) > TITLE_MIN_LENGTH:
        title = primary
    else:
        names = ", ".join(sorted(services)) or "unknown service"
        title = f"Detected anomaly in {names}"
    return title[:TITLE_MAX_LENGTH]


def build_summary(signals: Sequence[DetectionSignal]) -> str:
    return "\n".join(f"[{s.source}] {s.summary}" for s in signals)[:SUMMARY_MAX_LENGTH]


class SignalFuser:
    """Fuses a signal batch into a classified incident."""

    def fuse(self, signals: Sequence[DetectionSignal]) -> Optional[Incident]:
        """
        Build an incident from ``signals``.

        Args:
            signals: Signals in arrival order

        Returns:
            The new incident, or ``None`` when the batch is empty
        """
        batch = dedupe_signals(signals)
        if not batch:
            logger.info("No signals to fuse, no incident created")
            return None

        text = combined_text(batch)
        services = extract_services(text, batch)
        errors = extract_errors(text)
        severity = classify_severity(text, batch)
        root_cause = infer_root_cause(text, errors)

        if root_cause is None:
            logger.info(
                f"No root-cause cue matched ({ErrorKind.CLASSIFICATION_AMBIGUITY.value}), "
                "root cause under investigation"
            )

        incident = Incident(
            title=select_title(batch, services),
            summary=build_summary(batch),
            severity=severity,
            detected_at=batch[0].timestamp,
            services=services,
            errors=errors,
            root_cause=root_cause,
            signals=batch,
        )

        logger.info(
            f"Created incident {incident.id} [{incident.severity.value}] {incident.title} "
            f"(services={sorted(services)}, errors={sorted(errors)})"
        )
        return incident
