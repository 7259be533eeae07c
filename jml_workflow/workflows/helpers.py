"""
Workflow Helper Functions for the JML Workflow Engine.

Utility functions for template diffing, metadata validation, event
summaries and offboarding reports.
"""

import logging
from typing import Any, Dict, List, Tuple

from ..models import (
    EventType,
    LifecycleEvent,
    RoleTemplate,
    TaskStatus,
    TaskType,
    utc_now,
)

logger = logging.getLogger(__name__)


def required_app_ids(template: RoleTemplate) -> List[str]:
    """Required application ids of a role template, in declared order."""
    return template.required_app_ids()


def diff_required_apps(old_template: RoleTemplate, new_template: RoleTemplate) -> Tuple[List[str], List[str]]:
    """
    Calculate access changes between two role templates.

    Args:
        old_template: Template of the previous role
        new_template: Template of the new role

    Returns:
        Tuple of (apps_to_add, apps_to_remove); the two lists are disjoint
    """
    old_apps = required_app_ids(old_template)
    new_apps = required_app_ids(new_template)
    old_set = set(old_apps)
    new_set = set(new_apps)

    apps_to_add = [app_id for app_id in new_apps if app_id not in old_set]
    apps_to_remove = [app_id for app_id in old_apps if app_id not in new_set]

    return apps_to_add, apps_to_remove


def validate_metadata(event_type: EventType, metadata: Any) -> List[str]:
    """
    Validate that metadata fits the event type.

    Args:
        event_type: The lifecycle event type
        metadata: Metadata variant supplied by the caller

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []
    event_type = EventType(event_type)

    metadata_type = getattr(metadata, "event_type", None)
    if metadata_type != event_type.value:
        errors.append(
            f"{type(metadata).__name__} cannot be used for a {event_type.value} event"
        )
        return errors

    if event_type == EventType.JOINER and not metadata.manager.strip():
        errors.append("Manager is required for joiner events")

    if event_type == EventType.MOVER:
        overlap = set(metadata.apps_to_add) & set(metadata.apps_to_remove)
        if overlap:
            errors.append(f"Applications both added and removed: {', '.join(sorted(overlap))}")

    if event_type == EventType.LEAVER and metadata.transfer_to is not None and not metadata.transfer_to.strip():
        errors.append("Ownership transfer target cannot be blank")

    return errors


def create_event_summary(event: LifecycleEvent) -> Dict[str, Any]:
    """
    Create a summary of an event's execution.

    Args:
        event: LifecycleEvent in any status

    Returns:
        Dictionary with per-status task counts and timing
    """
    counts = {status.value: len(event.tasks_with_status(status)) for status in TaskStatus}
    duration = None
    if event.completed_at:
        duration = (event.completed_at - event.triggered_at).total_seconds()

    return {
        "event_id": event.id,
        "event_type": event.event_type.value,
        "user_id": event.user_id,
        "status": event.status.value,
        "triggered_by": event.triggered_by,
        "triggered_at": event.triggered_at.isoformat(),
        "completed_at": event.completed_at.isoformat() if event.completed_at else None,
        "duration_seconds": duration,
        "total_tasks": len(event.tasks),
        "tasks_by_status": counts,
        "error": event.error,
    }


def build_offboarding_report(event: LifecycleEvent) -> Dict[str, Any]:
    """
    Build the offboarding audit report for a leaver event.

    The report reflects task state at the time it is built; tasks after
    the report task are still pending.
    """
    completed = event.tasks_with_status(TaskStatus.COMPLETED)
    failed = event.tasks_with_status(TaskStatus.FAILED)
    finished = len(completed) + len(failed)

    def done(task_type: TaskType) -> bool:
        return any(task.type == task_type.value for task in completed)

    compliance = {
        "sso_revoked": done(TaskType.REVOKE_SSO),
        "oauth_revoked": done(TaskType.REVOKE_OAUTH),
        "ownership_transferred": done(TaskType.TRANSFER_OWNERSHIP),
        "app_access_revoked": not any(
            task.type == TaskType.REVOKE_APP_ACCESS.value and task.status != TaskStatus.COMPLETED
            for task in event.tasks
        ),
    }

    recommendations = []
    if failed:
        recommendations.append("Investigate failed offboarding tasks")
    if not compliance["ownership_transferred"]:
        recommendations.append("Confirm no shared resources remain owned by the leaver")

    return {
        "event_id": event.id,
        "generated_at": utc_now().isoformat(),
        "summary": {
            "user_id": event.user_id,
            "user_name": event.user_name,
            "email": event.user_email,
            "status": event.status.value,
            "initiated_by": event.triggered_by,
            "initiated_at": event.triggered_at.isoformat(),
        },
        "metrics": {
            "total_tasks": len(event.tasks),
            "completed_tasks": len(completed),
            "failed_tasks": len(failed),
            "success_rate": (len(completed) / finished * 100) if finished else 100.0,
        },
        "actions": [
            {
                "task_type": task.type,
                "target": task.target_id,
                "status": task.status.value,
                "started_at": task.started_at.isoformat() if task.started_at else None,
                "completed_at": task.completed_at.isoformat() if task.completed_at else None,
                "result": task.result,
                "error": task.error,
            }
            for task in event.tasks
        ],
        "compliance": compliance,
        "recommendations": recommendations,
    }
