"""
Admission decision model for the Pod webhook.

kopf owns the AdmissionReview envelope. This module models what the webhook
decided for one request: the verdict, a human-readable reason, and the
annotations to add to the Pod when it is mutated.
"""

from dataclasses import dataclass, field
from enum import Enum

from cmstate_injector.constants import VERDICT_ALLOWED, VERDICT_PATCHED


class Operation(str, Enum):
    """Admission operations defined by the Kubernetes API."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    CONNECT = "CONNECT"


@dataclass
class AdmissionDecision:
    """An allowed admission, optionally mutating the Pod's annotations."""

    reason: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def verdict(self) -> str:
        return VERDICT_PATCHED if self.annotations else VERDICT_ALLOWED


def allow(reason: str = "") -> AdmissionDecision:
    """Allow the request without mutating the Pod."""
    return AdmissionDecision(reason=reason)


def annotate(key: str, value: str, reason: str = "") -> AdmissionDecision:
    """Allow the request, setting annotation ``key`` to ``value`` on the Pod."""
    return AdmissionDecision(reason=reason, annotations={key: value})
