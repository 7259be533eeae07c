"""
Identity Lifecycle Workflow Engine (JML Workflow)

Turns joiner, mover and leaver events into ordered, auditable provisioning
and de-provisioning tasks, executes them in sequence and reports the
outcome per task and per event.
"""

__version__ = "1.0.0"
__author__ = "JML Engine Team"
__email__ = "team@example.com"

from .engine.policy_mapper import RoleTemplateResolver
from .engine.state_manager import IdentityStore, StateManager
from .notifications import NotificationEmitter
from .workflows.detector import EventDetector
from .workflows.executor import TaskExecutor
from .workflows.orchestrator import WorkflowOrchestrator

__all__ = [
    "EventDetector",
    "IdentityStore",
    "NotificationEmitter",
    "RoleTemplateResolver",
    "StateManager",
    "TaskExecutor",
    "WorkflowOrchestrator",
]
