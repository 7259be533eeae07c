"""
Workflows Package for the JML Workflow Engine.

This package provides the event builders, task executor, orchestrator and
event detector for Joiner, Mover and Leaver lifecycle events.
"""

from .base_workflow import BaseEventBuilder
from .detector import EventDetector
from .executor import TaskExecutor
from .helpers import (
    build_offboarding_report,
    create_event_summary,
    diff_required_apps,
    required_app_ids,
    validate_metadata,
)
from .joiner import JoinerBuilder
from .leaver import LeaverBuilder
from .mover import MoverBuilder
from .orchestrator import WorkflowOrchestrator

__all__ = [
    "BaseEventBuilder",
    "EventDetector",
    "JoinerBuilder",
    "LeaverBuilder",
    "MoverBuilder",
    "TaskExecutor",
    "WorkflowOrchestrator",
    "build_offboarding_report",
    "create_event_summary",
    "diff_required_apps",
    "required_app_ids",
    "validate_metadata",
]
