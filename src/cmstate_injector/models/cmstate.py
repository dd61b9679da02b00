"""
Pydantic models for CMState resources.

A CMState is the per-namespace resource derived from a CMTemplate. It records
which Pods (the audience) currently consume the generated configuration.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cmstate_injector.constants import (
    AUDIENCE_KIND_POD,
    CMSTATE_API_VERSION,
    CMSTATE_KIND,
)

from .common import ResourceMetadata


class CMAudience(BaseModel):
    """A single consumer of a CMState."""

    kind: str = Field(AUDIENCE_KIND_POD, description="Consumer kind")
    name: str = Field(..., description="Consumer name")


class CMStateSpec(BaseModel):
    """Specification for a CMState resource."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    audience: list[CMAudience] = Field(
        default_factory=list, description="Consumers currently using this state"
    )
    cmtemplate: str = Field("", description="Name of the originating CMTemplate")

    @field_validator("audience", mode="before")
    @classmethod
    def null_audience_is_empty(cls, v):
        # Go clients serialise an emptied slice as null
        return [] if v is None else v


class CMState(BaseModel):
    """Namespaced CMState custom resource."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field(CMSTATE_API_VERSION, alias="apiVersion")
    kind: str = CMSTATE_KIND
    metadata: ResourceMetadata = Field(default_factory=ResourceMetadata)
    spec: CMStateSpec = Field(default_factory=CMStateSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str | None:
        return self.metadata.namespace

    def find_audience_index(self, name: str) -> int | None:
        """Return the position of the audience entry named ``name``, if any."""
        for index, member in enumerate(self.spec.audience):
            if member.name == name:
                return index
        return None

    def audience_without(self, index: int) -> list[CMAudience]:
        """Return a new audience list with the entry at ``index`` left out."""
        return [
            member
            for position, member in enumerate(self.spec.audience)
            if position != index
        ]

    def to_resource(self) -> dict[str, Any]:
        """Serialise to the body accepted by the custom objects API."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @staticmethod
    def audience_patch(audience: list[CMAudience]) -> dict[str, Any]:
        """Build the merge patch that replaces the whole audience list."""
        return {"spec": {"audience": [member.model_dump() for member in audience]}}
