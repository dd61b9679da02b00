"""
Admission webhooks for the CMState injector.

This module provides the kopf mutating admission handler for Pods that
reference a CMTemplate.
"""

from .pod import handle_pod_admission, mutate_pod

__all__ = ["handle_pod_admission", "mutate_pod"]
