"""
State Manager for the JML Workflow Engine.

Defines the identity store contract the workflow engine reads and writes
(users, application access, role templates, OAuth tokens) and provides an
in-memory implementation with optional JSON file persistence.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..models import AppAccessRecord, RoleTemplate, SaasApp, User

logger = logging.getLogger(__name__)


class IdentityStore(ABC):
    """
    Storage collaborator used by the workflow engine.

    Implementations are expected to scope every lookup to the given tenant.
    """

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        """Return the user or None if absent."""

    @abstractmethod
    def get_users(self, tenant_id: str) -> List[User]:
        """Return every user of the tenant."""

    @abstractmethod
    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        """Apply a partial update to a user record."""

    @abstractmethod
    def get_role_template(self, template_id: str, tenant_id: str) -> Optional[RoleTemplate]:
        """Return the role template or None if absent."""

    @abstractmethod
    def get_saas_app(self, app_id: str, tenant_id: str) -> Optional[SaasApp]:
        """Return the application or None if absent."""

    @abstractmethod
    def create_user_app_access(self, record: AppAccessRecord) -> AppAccessRecord:
        """Record an access grant."""

    @abstractmethod
    def delete_user_app_access(self, user_id: str, app_id: str, tenant_id: str) -> bool:
        """Remove an access grant. Returns True if one was removed."""

    @abstractmethod
    def get_user_app_access_list(self, user_id: str, tenant_id: str) -> List[AppAccessRecord]:
        """Return the user's current access grants."""

    @abstractmethod
    def delete_user_oauth_tokens(self, user_id: str, tenant_id: str) -> int:
        """Delete all OAuth tokens of the user. Returns the number removed."""


class StateManager(IdentityStore):
    """
    In-memory identity store with optional JSON file persistence.

    Holds users, SaaS applications, role templates, access grants and
    OAuth token ids. Every mutation is written back to the state file
    when one is configured.
    """

    def __init__(self, storage_path: Optional[Union[str, Path]] = None):
        """
        Initialize the state manager.

        Args:
            storage_path: Path to store state as JSON.
                         If None, state is kept in memory only.
        """
        self.storage_path = Path(storage_path) if storage_path else None
        self.users: Dict[str, User] = {}
        self.apps: Dict[str, SaasApp] = {}
        self.role_templates: Dict[str, RoleTemplate] = {}
        self.access: List[AppAccessRecord] = []
        self.oauth_tokens: Dict[str, List[str]] = {}

        if self.storage_path:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_state()

        logger.info(
            f"Initialized StateManager with {'persistent' if self.storage_path else 'in-memory'} storage"
        )

    # Seeding helpers used by the CLI and tests

    def add_user(self, user: User) -> User:
        self.users[user.id] = user
        self._save_state()
        return user

    def add_app(self, app: SaasApp) -> SaasApp:
        self.apps[self._app_key(app.id, app.tenant_id)] = app
        self._save_state()
        return app

    def add_role_template(self, template: RoleTemplate, tenant_id: str = "default") -> RoleTemplate:
        self.role_templates[self._app_key(template.id, tenant_id)] = template
        self._save_state()
        return template

    def add_oauth_token(self, user_id: str, tenant_id: str, token_id: str):
        self.oauth_tokens.setdefault(self._app_key(user_id, tenant_id), []).append(token_id)
        self._save_state()

    # IdentityStore implementation

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_users(self, tenant_id: str) -> List[User]:
        return [user for user in self.users.values() if user.tenant_id == tenant_id]

    def update_user(self, user_id: str, updates: Dict[str, Any]) -> Optional[User]:
        user = self.users.get(user_id)
        if not user:
            logger.warning(f"Cannot update user: {user_id} not found")
            return None

        fields = {key: value for key, value in updates.items() if key in User.model_fields}
        updated = user.model_copy(update={**fields, "updated_at": datetime.now(timezone.utc)})
        self.users[user_id] = updated

        self._save_state()
        logger.info(f"Updated user {user_id}: {sorted(fields)}")
        return updated

    def get_role_template(self, template_id: str, tenant_id: str) -> Optional[RoleTemplate]:
        return self.role_templates.get(self._app_key(template_id, tenant_id))

    def get_saas_app(self, app_id: str, tenant_id: str) -> Optional[SaasApp]:
        return self.apps.get(self._app_key(app_id, tenant_id))

    def create_user_app_access(self, record: AppAccessRecord) -> AppAccessRecord:
        self.access.append(record)
        self._save_state()
        logger.info(f"Granted {record.app_id} to user {record.user_id}")
        return record

    def delete_user_app_access(self, user_id: str, app_id: str, tenant_id: str) -> bool:
        original_count = len(self.access)
        self.access = [
            record
            for record in self.access
            if not (record.user_id == user_id and record.app_id == app_id and record.tenant_id == tenant_id)
        ]

        if len(self.access) < original_count:
            self._save_state()
            logger.info(f"Removed access to {app_id} from user {user_id}")
            return True

        return False

    def get_user_app_access_list(self, user_id: str, tenant_id: str) -> List[AppAccessRecord]:
        return [
            record for record in self.access
            if record.user_id == user_id and record.tenant_id == tenant_id
        ]

    def delete_user_oauth_tokens(self, user_id: str, tenant_id: str) -> int:
        removed = self.oauth_tokens.pop(self._app_key(user_id, tenant_id), [])
        if removed:
            self._save_state()
        return len(removed)

    def get_state_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the stored state.

        Returns:
            Dictionary with user and access statistics
        """
        summary = {
            "total_users": len(self.users),
            "active_users": len([u for u in self.users.values() if u.is_active]),
            "total_access_records": len(self.access),
            "access_by_app": {},
            "role_templates": len(self.role_templates),
        }

        for record in self.access:
            summary["access_by_app"][record.app_id] = summary["access_by_app"].get(record.app_id, 0) + 1

        return summary

    @staticmethod
    def _app_key(item_id: str, tenant_id: str) -> str:
        return f"{tenant_id}:{item_id}"

    def _save_state(self):
        """Save current state to persistent storage."""
        if not self.storage_path:
            return

        try:
            state_data = {
                "users": [user.model_dump(mode="json") for user in self.users.values()],
                "apps": [app.model_dump(mode="json") for app in self.apps.values()],
                "role_templates": {
                    key: template.model_dump(mode="json") for key, template in self.role_templates.items()
                },
                "access": [record.model_dump(mode="json") for record in self.access],
                "oauth_tokens": self.oauth_tokens,
                "last_updated": datetime.now(timezone.utc).isoformat(),
            }

            with open(self.storage_path, "w", encoding="utf-8") as f:
                json.dump(state_data, f, indent=2, default=str)

        except OSError as e:
            logger.error(f"Failed to save state to {self.storage_path}: {e}")
            raise

    def _load_state(self):
        """Load state from persistent storage."""
        if not self.storage_path or not self.storage_path.exists():
            return

        with open(self.storage_path, encoding="utf-8") as f:
            state_data = json.load(f)

        for user_data in state_data.get("users", []):
            user = User.model_validate(user_data)
            self.users[user.id] = user

        for app_data in state_data.get("apps", []):
            app = SaasApp.model_validate(app_data)
            self.apps[self._app_key(app.id, app.tenant_id)] = app

        for key, template_data in state_data.get("role_templates", {}).items():
            self.role_templates[key] = RoleTemplate.model_validate(template_data)

        self.access = [AppAccessRecord.model_validate(r) for r in state_data.get("access", [])]
        self.oauth_tokens = {k: list(v) for k, v in state_data.get("oauth_tokens", {}).items()}

        logger.info(f"Loaded state for {len(self.users)} users from {self.storage_path}")
