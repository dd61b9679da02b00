"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- Admission decisions
- The Pod under admission
- CMTemplate and CMState custom resources
"""

from .admission import AdmissionDecision, Operation
from .cmstate import CMAudience, CMState, CMStateSpec
from .cmtemplate import CMTemplate
from .pod import Pod

__all__ = [
    "AdmissionDecision",
    "Operation",
    "CMAudience",
    "CMState",
    "CMStateSpec",
    "CMTemplate",
    "Pod",
]
