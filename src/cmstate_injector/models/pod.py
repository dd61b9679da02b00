"""
Pydantic model for the Pod carried in admission requests.

Only the metadata the webhook relies on is typed; every other field of the
submitted object is accepted as-is.
"""

from pydantic import BaseModel, ConfigDict, Field


class PodMetadata(BaseModel):
    """Pod metadata; unknown fields (labels, uid, ownerReferences...) are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str = ""
    generate_name: str = Field("", alias="generateName")
    namespace: str = ""
    annotations: dict[str, str] | None = None


class Pod(BaseModel):
    """A v1 Pod as submitted to the admission webhook."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_version: str = Field("v1", alias="apiVersion")
    kind: str = "Pod"
    metadata: PodMetadata = Field(default_factory=PodMetadata)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def annotations(self) -> dict[str, str]:
        return self.metadata.annotations or {}

    @property
    def identity(self) -> str:
        """
        Name used for the Pod in CMState audiences.

        Pods created by a controller may not have a name yet at admission
        time; their generateName prefix is used instead.
        """
        return self.metadata.name or self.metadata.generate_name

    def get_annotation(self, key: str) -> str:
        return self.annotations.get(key, "")

