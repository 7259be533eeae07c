"""
Tests for the Mover builder and mover processing.
"""

import pytest

from jml_workflow.models import EventStatus, EventType, RoleTemplate, RoleTemplateApp, TaskType
from jml_workflow.notifications import MOVER_COMPLETED
from jml_workflow.workflows import MoverBuilder, diff_required_apps, validate_metadata
from tests.conftest import TENANT, grant, make_template


class TestMoverBuilder:
    """Test cases for MoverBuilder."""

    @pytest.fixture
    def builder(self, store, resolver):
        return MoverBuilder(store, resolver, TENANT, {"access_review_days": 45})

    def test_template_diff(self, builder, mover_metadata):
        """Test access changes from the template diff."""
        assert builder.access_changes(mover_metadata) == (["C"], ["A"])

    def test_task_order(self, builder, user, mover_metadata):
        """Test mover task order."""
        tasks = builder.build_tasks(user, mover_metadata)

        assert [(t.type, t.target_id) for t in tasks] == [
            (TaskType.PROVISION_ACCESS.value, "C"),
            (TaskType.REVOKE_ACCESS.value, "A"),
            (TaskType.NOTIFY_PREVIOUS_MANAGER.value, "grace"),
            (TaskType.NOTIFY_NEW_MANAGER.value, "linus"),
            (TaskType.SCHEDULE_ACCESS_REVIEW.value, user.id),
        ]
        assert tasks[-1].description == "Schedule 45-day access review for role transition"

    def test_same_manager_skips_notifications(self, builder, user, mover_metadata):
        """Test that an unchanged manager gets no notifications."""
        metadata = mover_metadata.model_copy(update={"new_manager": "grace"})

        types = [t.type for t in builder.build_tasks(user, metadata)]

        assert TaskType.NOTIFY_PREVIOUS_MANAGER.value not in types
        assert TaskType.NOTIFY_NEW_MANAGER.value not in types
        assert types.count(TaskType.SCHEDULE_ACCESS_REVIEW.value) == 1

    @pytest.mark.parametrize("previous, new", [
        ("old-role", "missing"),
        ("missing", "new-role"),
        (None, "new-role"),
    ])
    def test_explicit_lists_when_templates_do_not_both_resolve(self, builder, mover_metadata, previous, new):
        """Test explicit lists are used unless both templates resolve."""
        metadata = mover_metadata.model_copy(update={
            "previous_role_template": previous,
            "new_role_template": new,
            "apps_to_add": ["jira"],
            "apps_to_remove": ["slack"],
        })

        assert builder.access_changes(metadata) == (["jira"], ["slack"])

    def test_templates_override_explicit_lists(self, builder, mover_metadata):
        """Test that resolved templates override explicit lists."""
        metadata = mover_metadata.model_copy(update={"apps_to_add": ["jira"], "apps_to_remove": ["slack"]})

        assert builder.access_changes(metadata) == (["C"], ["A"])


class TestDiffRequiredApps:
    """Test cases for diff_required_apps."""

    def test_optional_apps_ignored(self):
        """Test that optional apps are ignored by the diff."""
        old = make_template("old", ["A"], optional=["B"])
        new = make_template("new", ["B"])

        assert diff_required_apps(old, new) == (["B"], ["A"])

    def test_identical_templates_produce_no_changes(self):
        """Test that identical templates produce no changes."""
        template = RoleTemplate(id="t", name="t", expected_apps=[RoleTemplateApp(app_id="A")])

        assert diff_required_apps(template, template) == ([], [])


class TestMoverProcessing:
    """Test cases for mover processing through the orchestrator."""

    def test_successful_mover_updates_user(self, orchestrator, store, notifier, user, mover_metadata):
        """Test a successful mover adjusts access and updates the user."""
        grant(store, user.id, "A")
        grant(store, user.id, "B")
        received = []
        notifier.subscribe(MOVER_COMPLETED, received.append)

        event = orchestrator.process_mover(user.id, mover_metadata, "hr-sync")

        assert event.status == EventStatus.COMPLETED
        assert sorted(r.app_id for r in store.get_user_app_access_list(user.id, TENANT)) == ["B", "C"]

        updated = store.get_user(user.id)
        assert updated.department == "Platform"
        assert updated.job_title == "Senior Engineer"
        assert updated.manager == "linus"

        assert received[0]["from_department"] == "Engineering"
        assert received[0]["to_department"] == "Platform"
        assert received[0]["apps_added"] == 1
        assert received[0]["apps_removed"] == 1

    def test_failed_mover_leaves_user_unchanged(self, orchestrator, store, user, mover_metadata):
        """Test that a failed mover leaves the user record unchanged."""
        def broken(task, event):
            raise RuntimeError("directory unavailable")

        orchestrator.executor.register_handler(TaskType.REVOKE_ACCESS, broken)

        event = orchestrator.process_mover(user.id, mover_metadata, "hr-sync")

        assert event.status == EventStatus.FAILED
        assert event.error == "directory unavailable"
        assert store.get_user(user.id).department == "Engineering"


class TestValidateMetadata:
    """Test cases for validate_metadata."""

    def test_overlapping_add_and_remove(self, mover_metadata):
        """Test that overlapping add and remove lists are reported."""
        metadata = mover_metadata.model_copy(update={"apps_to_add": ["A", "B"], "apps_to_remove": ["B"]})

        assert validate_metadata(EventType.MOVER, metadata) == ["Applications both added and removed: B"]

    def test_wrong_variant(self, joiner_metadata):
        """Test that a mismatched metadata variant is reported."""
        errors = validate_metadata("mover", joiner_metadata)

        assert errors == ["JoinerMetadata cannot be used for a mover event"]

    def test_valid_metadata(self, mover_metadata):
        """Test that valid metadata has no errors."""
        assert validate_metadata(EventType.MOVER, mover_metadata) == []
