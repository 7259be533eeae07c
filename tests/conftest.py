"""
Shared fixtures for the JML Workflow Engine tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from jml_workflow.engine import RoleTemplateResolver, StateManager
from jml_workflow.models import (
    AppAccessRecord,
    JoinerMetadata,
    LeaverMetadata,
    MoverMetadata,
    RoleTemplate,
    RoleTemplateApp,
    SaasApp,
    User,
)
from jml_workflow.notifications import NotificationEmitter
from jml_workflow.workflows import WorkflowOrchestrator

TENANT = "acme"


def make_template(template_id, app_ids, optional=()):
    apps = [RoleTemplateApp(app_id=app_id, app_name=app_id.title()) for app_id in app_ids]
    apps.extend(RoleTemplateApp(app_id=app_id, required=False) for app_id in optional)
    return RoleTemplate(id=template_id, name=template_id, expected_apps=apps)


@pytest.fixture
def user():
    return User(
        id="u-100",
        tenant_id=TENANT,
        first_name="Ada",
        last_name="Lovelace",
        email="ada@acme.example",
        department="Engineering",
        job_title="Engineer",
        manager="grace",
    )


@pytest.fixture
def store(user):
    """In-memory identity store seeded with one user and a few apps."""
    state = StateManager()
    state.add_user(user)
    for app_id in ["A", "B", "C", "github", "slack", "jira"]:
        state.add_app(SaasApp(id=app_id, tenant_id=TENANT, name=f"App {app_id}"))
    state.add_role_template(make_template("eng-l1", ["A", "B"], optional=["C"]), TENANT)
    state.add_role_template(make_template("old-role", ["A", "B"]), TENANT)
    state.add_role_template(make_template("new-role", ["B", "C"]), TENANT)
    return state


@pytest.fixture
def resolver(store):
    return RoleTemplateResolver(store, TENANT)


@pytest.fixture
def notifier():
    return NotificationEmitter()


@pytest.fixture
def orchestrator(store, notifier, tmp_path):
    config = {
        "tenant_id": TENANT,
        "audit_dir": str(tmp_path / "audit"),
        "evidence_dir": str(tmp_path / "evidence"),
    }
    return WorkflowOrchestrator(store, config=config, notifier=notifier)


@pytest.fixture
def joiner_metadata():
    return JoinerMetadata(
        department="Engineering",
        job_title="Engineer",
        manager="grace",
        apps_to_provision=["C"],
        start_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def mover_metadata():
    return MoverMetadata(
        previous_department="Engineering",
        new_department="Platform",
        previous_job_title="Engineer",
        new_job_title="Senior Engineer",
        previous_manager="grace",
        new_manager="linus",
        previous_role_template="old-role",
        new_role_template="new-role",
        effective_date=datetime(2024, 6, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def leaver_metadata():
    return LeaverMetadata(
        department="Engineering",
        last_working_day=datetime.now(timezone.utc) - timedelta(days=1),
    )


def grant(store, user_id, app_id, app_name=None):
    store.create_user_app_access(AppAccessRecord(
        tenant_id=TENANT, user_id=user_id, app_id=app_id, app_name=app_name,
    ))
