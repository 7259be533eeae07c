"""
Engine Package.

This package provides the identity store contract and the role template
resolver used by the lifecycle workflows.
"""

from .policy_mapper import RoleTemplateResolver
from .state_manager import IdentityStore, StateManager

__all__ = [
    "IdentityStore",
    "RoleTemplateResolver",
    "StateManager",
]
