"""
Webhook error hierarchy with admission verdict mapping.

This module defines the error types raised along the admission pipeline,
and how each of them is answered to the Kubernetes API server: either as an
internal error (the request could not be evaluated) or as a denial (the
request was evaluated and a required write failed).
"""

import kopf

from cmstate_injector.constants import (
    STATUS_CODE_FORBIDDEN,
    STATUS_CODE_INTERNAL_ERROR,
    VERDICT_DENIED,
    VERDICT_ERRORED,
)


class CMStateInjectorError(Exception):
    """
    Base error class for all webhook exceptions.

    Carries the admission verdict and status code the error maps to.
    """

    def __init__(
        self,
        message: str,
        category: str,
        verdict: str = VERDICT_ERRORED,
        code: int = STATUS_CODE_INTERNAL_ERROR,
        cause: Exception | None = None,
    ):
        """
        Initialize webhook error.

        Args:
            message: Human-readable error description
            category: Error category (decode, lookup, store, timeout)
            verdict: Either "errored" or "denied"
            code: Status code reported in the admission response
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.category = category
        self.verdict = verdict
        self.code = code
        self.cause = cause

    @property
    def denied(self) -> bool:
        return self.verdict == VERDICT_DENIED

    def as_admission_error(self) -> kopf.AdmissionError:
        """Convert to the kopf admission error reported to the API server."""
        return kopf.AdmissionError(str(self), code=self.code)

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.cause is not None:
            return f"{base_msg}: {self.cause}"
        return base_msg


class AdmissionDecodeError(CMStateInjectorError):
    """The admission request did not carry a decodable Pod."""

    def __init__(self, message: str, cause: Exception | None = None):
        super().__init__(message=message, category="decode", cause=cause)


class StoreReadError(CMStateInjectorError):
    """Reading a custom resource from the Kubernetes API failed."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        cause: Exception | None = None,
    ):
        if status:
            message = f"{message} (HTTP {status})"
        super().__init__(message=message, category="lookup", cause=cause)
        self.status = status


class TemplateNotFoundError(StoreReadError):
    """The CMTemplate named by the Pod annotation does not exist."""

    def __init__(self, template_name: str, cause: Exception | None = None):
        super().__init__(
            message=f"cmtemplate '{template_name}' not found",
            status=404,
            cause=cause,
        )
        self.template_name = template_name


class StoreWriteError(CMStateInjectorError):
    """Creating or patching a CMState failed; the admission is denied."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason: str | None = None,
        cause: Exception | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"
        super().__init__(
            message=message,
            category="store",
            verdict=VERDICT_DENIED,
            code=STATUS_CODE_FORBIDDEN,
            cause=cause,
        )
        self.status = status
        self.reason = reason

    @property
    def conflict(self) -> bool:
        return self.status == 409


class AdmissionTimeoutError(CMStateInjectorError):
    """The admission deadline expired before a decision was reached."""

    def __init__(self, timeout: float):
        super().__init__(
            message=f"admission request exceeded its {timeout:g}s deadline",
            category="timeout",
        )
        self.timeout = timeout
