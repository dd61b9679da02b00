"""
Error handling module for the CMState injector.

This module provides the error hierarchy used along the admission pipeline
and the verdict each error maps to.
"""

from .webhook_errors import (
    AdmissionDecodeError,
    AdmissionTimeoutError,
    CMStateInjectorError,
    StoreReadError,
    StoreWriteError,
    TemplateNotFoundError,
)

__all__ = [
    "CMStateInjectorError",
    "AdmissionDecodeError",
    "AdmissionTimeoutError",
    "StoreReadError",
    "StoreWriteError",
    "TemplateNotFoundError",
]
