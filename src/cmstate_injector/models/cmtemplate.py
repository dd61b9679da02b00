"""
Pydantic models for CMTemplate resources.

CMTemplates are owned by other controllers; the webhook only reads the
template name and the set of annotation keys to replace.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cmstate_injector.constants import CMSTATE_API_VERSION, CMTEMPLATE_KIND

from .common import ResourceMetadata


class CMTemplateBody(BaseModel):
    """The templated ConfigMap description."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    annotation_replace: dict[str, Any] = Field(
        default_factory=dict,
        alias="annotationReplace",
        description="Pod annotation keys whose values seed the CMState labels",
    )


class CMTemplateSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    template: CMTemplateBody = Field(default_factory=CMTemplateBody)


class CMTemplate(BaseModel):
    """Cluster-scoped CMTemplate custom resource."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field(CMSTATE_API_VERSION, alias="apiVersion")
    kind: str = CMTEMPLATE_KIND
    metadata: ResourceMetadata = Field(default_factory=ResourceMetadata)
    spec: CMTemplateSpec = Field(default_factory=CMTemplateSpec)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def replace_keys(self) -> list[str]:
        return list(self.spec.template.annotation_replace)
