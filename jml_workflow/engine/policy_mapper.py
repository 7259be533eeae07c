"""
Role Template Resolver for the JML Workflow Engine.

Resolves role template identifiers to the bundle of applications a role is
expected to hold. Templates are read from the identity store first and then
from the role_templates.yaml configuration file.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml

from ..models import RoleTemplate
from .state_manager import IdentityStore

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES_FILE = Path(__file__).parent / "role_templates.yaml"


class RoleTemplateResolver:
    """
    Maps role template ids to expected application access.

    Lookup failures of any kind are reported as "not found" so callers
    can fall back to explicit application lists.
    """

    def __init__(self, store: Optional[IdentityStore] = None, tenant_id: str = "default",
                 templates_file: Optional[Union[str, Path]] = None):
        """
        Initialize the resolver.

        Args:
            store: Identity store queried before the file templates
            tenant_id: Tenant the lookups are scoped to
            templates_file: YAML file with role templates.
                            Defaults to the packaged role_templates.yaml
        """
        self.store = store
        self.tenant_id = tenant_id
        self.templates_file = Path(templates_file) if templates_file else DEFAULT_TEMPLATES_FILE
        self.templates: Dict[str, RoleTemplate] = {}

        self._load_templates()

    def _load_templates(self):
        """Load role templates from the YAML file."""
        if not self.templates_file.exists():
            logger.warning(f"Role templates file not found: {self.templates_file}")
            return

        with open(self.templates_file, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        self.templates = {}
        for template_id, template_config in (data.get("role_templates") or {}).items():
            self.templates[template_id] = RoleTemplate(
                id=template_id,
                name=template_config.get("name", template_id),
                department=template_config.get("department"),
                role_level=template_config.get("role_level"),
                expected_apps=template_config.get("expected_apps", []),
            )

        logger.info(f"Loaded {len(self.templates)} role templates from {self.templates_file}")

    def resolve(self, template_id: str) -> Optional[RoleTemplate]:
        """
        Resolve a role template.

        Args:
            template_id: Role template identifier

        Returns:
            RoleTemplate if found, None if missing or the lookup failed
        """
        try:
            if self.store is not None:
                template = self.store.get_role_template(template_id, self.tenant_id)
                if template:
                    return template

            template = self.templates.get(template_id)
            if not template:
                logger.warning(f"Role template not found: {template_id}")
            return template

        except Exception as e:
            logger.warning(f"Role template lookup failed for {template_id}: {e}")
            return None

    def list_templates(self) -> List[RoleTemplate]:
        """Get all templates loaded from the configuration file."""
        return [self.templates[key] for key in sorted(self.templates)]

    def reload_config(self):
        """Reload the templates file (useful for dynamic updates)."""
        logger.info("Reloading role templates")
        self._load_templates()
