"""Post-mortem synthesis.

Builds a structured ``PostMortem`` from a finished incident and publishes it
to the incident store and to memory search, where future history advice
will find it.

Synthesis is a pure function of the incident: ``generated_at`` defaults to
the resolution time, else the last action time, else the detection time, so
re-running it on an unchanged incident gives identical output.

Example:
    >>> synthesizer = PostMortemSynthesizer(store, memory)
    >>> pm = synthesizer.synthesize(incident)
    >>> await synthesizer.publish(pm)
"""
from datetime import datetime
from typing import Callable, List, Optional

from ..collaborators import guard
from ..logging_context import get_logger
from ..models import Incident, MemoryDocument, PostMortem, Severity
from ..storage.base import IncidentStore, MemorySearch

logger = get_logger(__name__)

MEMORY_DOCUMENT_TYPE = "post-mortem"
MEMORY_DOCUMENT_SOURCE = "ghost-operator"

UNKNOWN_ROOT_CAUSE = "Root cause under investigation"
NO_REMEDIATION = "No automated remediation was performed."


def _ts(value: datetime) -> str:
    return value.isoformat()


def build_timeline(incident: Incident) -> str:
    lines = [f"- {_ts(incident.detected_at)}: Incident detected"]

    for signal in incident.signals:
        lines.append(f"- {_ts(signal.timestamp)}: [{signal.source}] {signal.title}")

    for action in incident.remediation_actions:
        outcome = "success" if action.success else "failed"
        lines.append(
            f"- {_ts(action.executed_at)}: Remediation: {action.description} ({outcome})"
        )

    if incident.resolved_at:
        lines.append(f"- {_ts(incident.resolved_at)}: Incident resolved")

    return "\n".join(lines)


def build_impact(incident: Incident) -> str:
    parts = [f"Severity: {incident.severity.value.upper()}"]
    if incident.services:
        parts.append(f"Affected services: {', '.join(sorted(incident.services))}")
    if incident.errors:
        parts.append(f"Error codes observed: {', '.join(sorted(incident.errors))}")
    return "\n".join(parts)


def build_remediation(incident: Incident) -> str:
    if not incident.remediation_actions:
        return NO_REMEDIATION
    return "\n".join(
        f"- [{a.type.value}] {a.description} → {'Success' if a.success else 'Failed'}"
        for a in incident.remediation_actions
    )


def build_lessons(incident: Incident) -> str:
    lessons: List[str] = []

    if incident.root_cause:
        lessons.append(
            f"Root cause identified as: {incident.root_cause}. "
            "Ensure monitoring covers this failure mode."
        )

    failed = [a for a in incident.remediation_actions if not a.success]
    if failed:
        lessons.append(
            f"{len(failed)} remediation action(s) failed. "
            "Review and improve automated recovery procedures."
        )

    if incident.severity == Severity.CRITICAL:
        lessons.append(
            "Critical incident - consider adding redundancy or circuit breakers "
            "for affected services."
        )

    if not lessons:
        lessons.append(
            "Standard incident handling. Continue monitoring and refining detection rules."
        )

    return "\n".join(lessons)


def default_generated_at(incident: Incident) -> datetime:
    if incident.resolved_at:
        return incident.resolved_at
    if incident.remediation_actions:
        return incident.remediation_actions[-1].executed_at
    return incident.detected_at


def render_markdown(post_mortem: PostMortem) -> str:
    """Markdown body of the memory search document."""
    return "\n".join([
        f"# {post_mortem.title}",
        "",
        "## Timeline",
        post_mortem.timeline,
        "",
        "## Root Cause",
        post_mortem.root_cause,
        "",
        "## Impact",
        post_mortem.impact,
        "",
        "## Remediation",
        post_mortem.remediation,
        "",
        "## Lessons Learned",
        post_mortem.lessons_learned,
    ])


class PostMortemSynthesizer:
    """Generates and publishes post-mortems."""

    def __init__(
        self,
        store: IncidentStore,
        memory: MemorySearch,
        clock: Optional[Callable[[Incident], datetime]] = None,
    ):
        self.store = store
        self.memory = memory
        self.clock = clock or default_generated_at

    def synthesize(self, incident: Incident) -> PostMortem:
        return PostMortem(
            incident_id=incident.id,
            title=f"Post-Mortem: {incident.title}",
            timeline=build_timeline(incident),
            root_cause=incident.root_cause or UNKNOWN_ROOT_CAUSE,
            impact=build_impact(incident),
            remediation=build_remediation(incident),
            lessons_learned=build_lessons(incident),
            generated_at=self.clock(incident),
        )

    async def publish(self, post_mortem: PostMortem) -> Optional[str]:
        """
        Persist ``post_mortem`` and index it for memory search.

        Returns:
            The memory search document id, or ``None`` if indexing failed
        """
        document = MemoryDocument(
            title=post_mortem.title,
            content=render_markdown(post_mortem),
            metadata={
                'type': MEMORY_DOCUMENT_TYPE,
                'incident_id': post_mortem.incident_id,
                'generated_at': post_mortem.generated_at.isoformat(),
                'source': MEMORY_DOCUMENT_SOURCE,
            },
        )

        doc_id = await guard(
            self.memory.store(document),
            fallback=None,
            operation="memory.store",
        )
        if doc_id.value:
            logger.info(f"Post-mortem indexed in memory search: {doc_id.value}")

        stored = await guard(
            self.store.add_post_mortem(post_mortem),
            fallback=False,
            operation="store.add_post_mortem",
        )
        if not stored.value:
            logger.warning(f"Post-mortem for {post_mortem.incident_id} was not persisted")

        return doc_id.value

    async def generate(self, incident: Incident) -> PostMortem:
        """Synthesize, attach to the incident and publish."""
        post_mortem = self.synthesize(incident)
        incident.post_mortem = post_mortem
        await self.publish(post_mortem)
        logger.info(f"Post-mortem generated for incident {incident.id}")
        return post_mortem
