"""
Ghost Operator: autonomous incident decision engine.

Fuses detection signals into classified incidents, remediates them with a
history-informed strategy, validates the result and writes post-mortems.
"""
from .version import __version__, VERSION_INFO, get_version, get_version_info
from .logging_context import (
    get_logger,
    set_context,
    get_context,
    clear_context,
    LoggingContext,
)
from .models import (
    ActionType,
    DetectionSignal,
    Incident,
    PostMortem,
    RemediationAction,
    Severity,
)
from .config import OperatorConfig
from .pipeline import IncidentPipeline, PipelineNotice, PipelineResult

__all__ = [
    "__version__",
    "VERSION_INFO",
    "get_version",
    "get_version_info",
    "get_logger",
    "set_context",
    "get_context",
    "clear_context",
    "LoggingContext",
    "ActionType",
    "DetectionSignal",
    "Incident",
    "PostMortem",
    "RemediationAction",
    "Severity",
    "OperatorConfig",
    "IncidentPipeline",
    "PipelineNotice",
    "PipelineResult",
]
