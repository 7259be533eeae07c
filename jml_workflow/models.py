"""
Core data models for the JML Workflow Engine.

This module defines the Pydantic models used throughout the system
for lifecycle events, tasks, event metadata, role templates and the
collaborator records read from the identity store.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import InvalidTransitionError


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class EventType(str, Enum):
    """Identity lifecycle events handled by the engine."""
    JOINER = "joiner"
    MOVER = "mover"
    LEAVER = "leaver"


class EventStatus(str, Enum):
    """Status of a lifecycle event."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    """Status of a single lifecycle task."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class TaskType(str, Enum):
    """Task kinds the builders emit and the executor understands."""
    PROVISION_ACCESS = "provision_access"
    REVOKE_ACCESS = "revoke_access"
    SEND_WELCOME_EMAIL = "send_welcome_email"
    NOTIFY_MANAGER = "notify_manager"
    NOTIFY_PREVIOUS_MANAGER = "notify_previous_manager"
    NOTIFY_NEW_MANAGER = "notify_new_manager"
    SCHEDULE_ACCESS_REVIEW = "schedule_access_review"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    REVOKE_SSO = "revoke_sso"
    REVOKE_OAUTH = "revoke_oauth"
    REVOKE_APP_ACCESS = "revoke_app_access"
    RECLAIM_LICENSES = "reclaim_licenses"
    GENERATE_AUDIT_REPORT = "generate_audit_report"


class EmployeeType(str, Enum):
    FULL_TIME = "full_time"
    CONTRACTOR = "contractor"
    INTERN = "intern"
    TEMPORARY = "temporary"


class TerminationType(str, Enum):
    VOLUNTARY = "voluntary"
    INVOLUNTARY = "involuntary"
    RETIREMENT = "retirement"
    CONTRACT_END = "contract_end"


class JoinerMetadata(BaseModel):
    """Onboarding details for a new joiner."""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["joiner"] = "joiner"
    department: str
    job_title: str
    manager: str
    role_template: Optional[str] = Field(None, description="Role template that replaces apps_to_provision")
    apps_to_provision: Tuple[str, ...] = ()
    start_date: datetime
    employee_type: EmployeeType = EmployeeType.FULL_TIME


class MoverMetadata(BaseModel):
    """Department or role change details for a mover."""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["mover"] = "mover"
    previous_department: str
    new_department: str
    previous_job_title: str
    new_job_title: str
    previous_manager: str
    new_manager: str
    previous_role_template: Optional[str] = None
    new_role_template: Optional[str] = None
    apps_to_add: Tuple[str, ...] = Field((), description="Used only when templates do not resolve")
    apps_to_remove: Tuple[str, ...] = Field((), description="Used only when templates do not resolve")
    effective_date: datetime


class LeaverMetadata(BaseModel):
    """Offboarding details for a leaver."""
    model_config = ConfigDict(frozen=True)

    event_type: Literal["leaver"] = "leaver"
    department: str
    last_working_day: datetime
    termination_type: TerminationType = TerminationType.VOLUNTARY
    transfer_to: Optional[str] = Field(None, description="User receiving ownership of the leaver's resources")
    apps_to_revoke: Tuple[str, ...] = ()
    immediate_revocation: bool = False


EventMetadata = Annotated[
    Union[JoinerMetadata, MoverMetadata, LeaverMetadata],
    Field(discriminator="event_type"),
]


class LifecycleTask(BaseModel):
    """One atomic unit of work belonging to exactly one lifecycle event."""
    id: str = Field(default_factory=lambda: generate_id("task"))
    type: str = Field(..., description="Task kind, normally a TaskType value")
    description: str = Field(..., description="Human-readable summary, never parsed")
    target_id: Optional[str] = Field(None, description="Application id, manager or user the task acts on")
    status: TaskStatus = TaskStatus.PENDING
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v):
        """Store task kinds as plain strings."""
        if isinstance(v, Enum):
            return v.value
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED)

    def mark_started(self):
        """Move the task from pending to in_progress."""
        if self.status != TaskStatus.PENDING:
            raise InvalidTransitionError(f"Task {self.id} cannot start from status {self.status.value}")
        self.status = TaskStatus.IN_PROGRESS
        self.started_at = utc_now()

    def mark_completed(self, result: Optional[Dict[str, Any]] = None):
        """Record a successful outcome."""
        self._require_in_progress(TaskStatus.COMPLETED)
        self.status = TaskStatus.COMPLETED
        self.completed_at = utc_now()
        self.result = result

    def mark_failed(self, error: str):
        """Record a failed outcome."""
        self._require_in_progress(TaskStatus.FAILED)
        self.status = TaskStatus.FAILED
        self.completed_at = utc_now()
        self.error = error

    def mark_skipped(self):
        """Record that no handler ran for this task."""
        self._require_in_progress(TaskStatus.SKIPPED)
        self.status = TaskStatus.SKIPPED
        self.completed_at = utc_now()

    def _require_in_progress(self, target: TaskStatus):
        if self.status != TaskStatus.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Task {self.id} cannot move to {target.value} from status {self.status.value}"
            )


class LifecycleEvent(BaseModel):
    """One joiner, mover or leaver occurrence and its ordered task list."""
    id: str = Field(default_factory=lambda: generate_id("jml"))
    tenant_id: str
    event_type: EventType
    user_id: str
    user_name: str = ""
    user_email: str = ""
    triggered_by: str
    triggered_at: datetime = Field(default_factory=utc_now)
    effective_date: Optional[datetime] = None
    status: EventStatus = EventStatus.PENDING
    metadata: EventMetadata
    tasks: List[LifecycleTask] = Field(default_factory=list)
    completed_at: Optional[datetime] = None
    error: Optional[str] = None

    @field_validator("metadata")
    @classmethod
    def validate_metadata_shape(cls, v, info):
        """Metadata variant must match the event type."""
        event_type = info.data.get("event_type")
        if event_type is not None and v.event_type != EventType(event_type).value:
            raise ValueError(
                f"{type(v).__name__} cannot be attached to a {EventType(event_type).value} event"
            )
        return v

    @property
    def is_terminal(self) -> bool:
        return self.status in (EventStatus.COMPLETED, EventStatus.FAILED, EventStatus.CANCELLED)

    def tasks_with_status(self, status: TaskStatus) -> List[LifecycleTask]:
        return [task for task in self.tasks if task.status == status]

    def mark_completed(self):
        self._require_open(EventStatus.COMPLETED)
        self.status = EventStatus.COMPLETED
        self.completed_at = utc_now()

    def mark_failed(self, error: str):
        self._require_open(EventStatus.FAILED)
        self.status = EventStatus.FAILED
        self.error = error

    def mark_cancelled(self):
        """Cancel an event whose tasks have not started."""
        if self.status != EventStatus.PENDING:
            raise InvalidTransitionError(
                f"Event {self.id} can only be cancelled while pending, status is {self.status.value}"
            )
        self.status = EventStatus.CANCELLED
        self.completed_at = utc_now()

    def _require_open(self, target: EventStatus):
        if self.is_terminal:
            raise InvalidTransitionError(
                f"Event {self.id} cannot move to {target.value} from status {self.status.value}"
            )


class RoleTemplateApp(BaseModel):
    """Expected access to a single application for a role."""
    app_id: str
    app_name: str = ""
    access_type: str = "user"
    required: bool = True


class RoleTemplate(BaseModel):
    """Named bundle of expected application access for a job role."""
    id: str
    name: str
    department: Optional[str] = None
    role_level: Optional[str] = None
    expected_apps: List[RoleTemplateApp] = Field(default_factory=list)

    def required_app_ids(self) -> List[str]:
        """Required application ids in declared order, without duplicates."""
        seen = set()
        app_ids = []
        for app in self.expected_apps:
            if app.required and app.app_id not in seen:
                seen.add(app.app_id)
                app_ids.append(app.app_id)
        return app_ids


class User(BaseModel):
    """User record as held by the identity store."""
    id: str
    tenant_id: str = "default"
    first_name: str = ""
    last_name: str = ""
    email: str
    department: Optional[str] = None
    job_title: Optional[str] = None
    manager: Optional[str] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Basic email validation."""
        if "@" not in v:
            raise ValueError("Invalid email format")
        return v

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AppAccessRecord(BaseModel):
    """A user's access grant to a SaaS application."""
    tenant_id: str
    user_id: str
    app_id: str
    app_name: Optional[str] = None
    access_type: str = "user"
    status: str = "active"
    granted_at: datetime = Field(default_factory=utc_now)
    granted_by: Optional[str] = None


class SaasApp(BaseModel):
    """SaaS application known to the tenant."""
    id: str
    tenant_id: str = "default"
    name: str


class AuditRecord(BaseModel):
    """Audit record for a single task outcome."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=utc_now)
    tenant_id: str
    event_id: str
    event_type: EventType
    user_id: str
    user_email: str = ""
    task_id: str
    task_type: str
    target: Optional[str] = None
    status: TaskStatus
    success: bool
    error_message: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class DetectedJoiner(BaseModel):
    user_id: str
    start_date: datetime


class DetectedMover(BaseModel):
    user_id: str
    changes: List[str] = Field(default_factory=list)


class DetectedLeaver(BaseModel):
    user_id: str
    last_day: datetime


class DetectionResult(BaseModel):
    """Candidate lifecycle events found by the detector."""
    joiners: List[DetectedJoiner] = Field(default_factory=list)
    movers: List[DetectedMover] = Field(default_factory=list)
    leavers: List[DetectedLeaver] = Field(default_factory=list)


class ProcessingSummary(BaseModel):
    """Counts of detected events the orchestrator processed."""
    processed_joiners: int = 0
    processed_movers: int = 0
    processed_leavers: int = 0


# Type aliases for convenience
LifecycleEvents = List[LifecycleEvent]
AuditRecords = List[AuditRecord]
