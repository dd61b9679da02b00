"""
Service layer for the CMState injector.

This module provides the CMState resolution and mutation logic, separated
from the admission webhook handling.
"""

from .state_mutator import admit_pod_create, admit_pod_delete, generate_cmstate
from .state_resolver import ResolvedState, derive_state_name, resolve_state

__all__ = [
    "ResolvedState",
    "admit_pod_create",
    "admit_pod_delete",
    "derive_state_name",
    "generate_cmstate",
    "resolve_state",
]
