"""
Tests for the Leaver builder and leaver processing.
"""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from jml_workflow.models import EventStatus, TaskStatus, TaskType
from jml_workflow.notifications import LEAVER_COMPLETED
from jml_workflow.workflows import LeaverBuilder
from tests.conftest import TENANT, grant


class TestLeaverBuilder:
    """Test cases for LeaverBuilder."""

    @pytest.fixture
    def builder(self, store, resolver):
        return LeaverBuilder(store, resolver, TENANT)

    def test_tasks_follow_live_access(self, builder, store, user, leaver_metadata):
        """Test that revocations follow live access rather than metadata."""
        grant(store, user.id, "github", "GitHub")
        grant(store, user.id, "slack")
        metadata = leaver_metadata.model_copy(update={"transfer_to": "grace", "apps_to_revoke": ["jira"]})

        tasks = builder.build_tasks(user, metadata)

        assert [(t.type, t.target_id) for t in tasks] == [
            (TaskType.TRANSFER_OWNERSHIP.value, "grace"),
            (TaskType.REVOKE_SSO.value, None),
            (TaskType.REVOKE_OAUTH.value, None),
            (TaskType.REVOKE_APP_ACCESS.value, "github"),
            (TaskType.REVOKE_APP_ACCESS.value, "slack"),
            (TaskType.RECLAIM_LICENSES.value, None),
            (TaskType.GENERATE_AUDIT_REPORT.value, None),
        ]
        assert tasks[3].description == "Revoke access to GitHub"
        assert tasks[4].description == "Revoke access to slack"

    def test_no_transfer_task_without_target(self, builder, user, leaver_metadata):
        """Test that no transfer task is built without a target."""
        types = [t.type for t in builder.build_tasks(user, leaver_metadata)]
        assert TaskType.TRANSFER_OWNERSHIP.value not in types
        assert types[0] == TaskType.REVOKE_SSO.value

    @pytest.mark.parametrize("days_until_last_day, immediate, expected", [
        (1, False, False),
        (1, True, True),
        (0, False, True),
        (-3, False, True),
    ])
    def test_should_execute(self, builder, leaver_metadata, days_until_last_day, immediate, expected):
        """Test leaver gating on last working day and immediate revocation."""
        now = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
        metadata = leaver_metadata.model_copy(update={
            "last_working_day": now + timedelta(days=days_until_last_day),
            "immediate_revocation": immediate,
        })

        assert builder.should_execute(metadata, now) is expected


class TestLeaverProcessing:
    """Test cases for leaver processing through the orchestrator."""

    def test_future_leaver_stays_pending(self, orchestrator, store, user, leaver_metadata):
        """Test that a leaver with a future last day stays pending."""
        grant(store, user.id, "github")
        metadata = leaver_metadata.model_copy(update={
            "last_working_day": datetime.now(timezone.utc) + timedelta(days=14),
        })

        event = orchestrator.process_leaver(user.id, metadata, "hr-sync")

        assert event.status == EventStatus.PENDING
        assert event.tasks
        assert all(t.status == TaskStatus.PENDING for t in event.tasks)
        assert store.get_user(user.id).is_active is True
        assert len(store.get_user_app_access_list(user.id, TENANT)) == 1

    def test_immediate_revocation_runs_before_last_day(self, orchestrator, store, user, leaver_metadata):
        """Test that immediate revocation runs the leaver now despite a future last day."""
        grant(store, user.id, "github")
        metadata = leaver_metadata.model_copy(update={
            "last_working_day": datetime.now(timezone.utc) + timedelta(days=14),
            "immediate_revocation": True,
        })

        event = orchestrator.process_leaver(user.id, metadata, "hr-sync")

        assert event.status == EventStatus.COMPLETED
        assert len(event.tasks) == 5
        assert all(t.status == TaskStatus.COMPLETED for t in event.tasks)
        assert store.get_user(user.id).is_active is False
        assert store.get_user_app_access_list(user.id, TENANT) == []

    def test_pending_leaver_can_be_cancelled(self, orchestrator, user, leaver_metadata):
        """Test cancelling a pending leaver."""
        metadata = leaver_metadata.model_copy(update={
            "last_working_day": datetime.now(timezone.utc) + timedelta(days=14),
        })
        event = orchestrator.process_leaver(user.id, metadata, "hr-sync")

        orchestrator.cancel(event)

        assert event.status == EventStatus.CANCELLED

    def test_successful_leaver(self, orchestrator, store, notifier, user, leaver_metadata):
        """Test a successful leaver revokes access and stores a report."""
        grant(store, user.id, "github")
        grant(store, user.id, "slack")
        store.add_oauth_token(user.id, TENANT, "tok-1")
        store.add_oauth_token(user.id, TENANT, "tok-2")
        received = []
        notifier.subscribe(LEAVER_COMPLETED, received.append)

        event = orchestrator.process_leaver(user.id, leaver_metadata, "hr-sync")

        assert event.status == EventStatus.COMPLETED
        assert store.get_user(user.id).is_active is False
        assert store.get_user_app_access_list(user.id, TENANT) == []

        results = {t.type: t.result for t in event.tasks}
        assert results[TaskType.REVOKE_OAUTH.value] == {"oauth_revoked": True, "tokens_removed": 2}
        assert results[TaskType.RECLAIM_LICENSES.value] == {"licenses_reclaimed": 2, "licenses_remaining": 0}

        report_result = results[TaskType.GENERATE_AUDIT_REPORT.value]
        assert report_result["report_generated"] is True
        report = json.loads(Path(report_result["evidence_path"]).read_text())
        assert report["report_id"] == report_result["report_id"]
        assert report["compliance"]["sso_revoked"] is True
        assert report["compliance"]["app_access_revoked"] is True

        assert received == [{
            "tenant_id": TENANT,
            "user_id": user.id,
            "user_name": "Ada Lovelace",
            "department": "Engineering",
            "termination_type": "voluntary",
            "apps_revoked": 2,
        }]
