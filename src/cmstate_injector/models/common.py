"""
Common models shared across different resource types.

This module defines the object metadata subset the webhook reads and writes
on custom resources.
"""

from pydantic import BaseModel, ConfigDict, Field


class ResourceMetadata(BaseModel):
    """Subset of Kubernetes ObjectMeta; unknown fields are preserved."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = Field("", description="Resource name")
    namespace: str | None = Field(
        None, description="Resource namespace (unset for cluster-scoped resources)"
    )
    labels: dict[str, str] = Field(default_factory=dict)
    resource_version: str | None = Field(None, alias="resourceVersion")
