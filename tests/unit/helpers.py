"""Test doubles and builders for admission webhook tests."""

import asyncio
import uuid
from typing import Any

from cmstate_injector.constants import (
    CMSTATE_GROUP,
    CMSTATE_PLURAL,
    ERROR_CREATING_CMSTATE,
    ERROR_PATCHING_CMSTATE,
)
from cmstate_injector.errors import StoreWriteError, TemplateNotFoundError
from cmstate_injector.models import CMAudience, CMState, CMTemplate


class FakeCMStateStore:
    """In-memory stand-in for CMStateStore.

    Records every call so tests can assert which store operations happened.
    Failures are injected through the ``*_error`` attributes.
    """

    def __init__(self):
        self.templates: dict[str, CMTemplate] = {}
        self.states: dict[tuple[str, str], CMState] = {}
        self.calls: list[tuple] = []
        self.read_error: Exception | None = None
        self.create_error: Exception | None = None
        self.patch_error: Exception | None = None
        self.delay: float = 0.0

    @property
    def writes(self) -> list[tuple]:
        return [call for call in self.calls if call[0] in ("create", "patch")]

    def add_template(self, name: str, annotation_replace: dict | None = None):
        self.templates[name] = CMTemplate.model_validate(
            {
                "metadata": {"name": name},
                "spec": {"template": {"annotationReplace": annotation_replace or {}}},
            }
        )
        return self.templates[name]

    def add_state(self, namespace: str, name: str, audience: list[str], template=""):
        self.states[(namespace, name)] = CMState.model_validate(
            {
                "metadata": {"name": name, "namespace": namespace},
                "spec": {
                    "audience": [{"kind": "Pod", "name": n} for n in audience],
                    "cmtemplate": template,
                },
            }
        )
        return self.states[(namespace, name)]

    async def _maybe_wait(self):
        if self.delay:
            await asyncio.sleep(self.delay)

    async def get_state(self, namespace: str, name: str) -> CMState | None:
        self.calls.append(("get_state", namespace, name))
        await self._maybe_wait()
        if self.read_error:
            raise self.read_error
        state = self.states.get((namespace, name))
        return state.model_copy(deep=True) if state else None

    async def get_template(self, name: str) -> CMTemplate:
        self.calls.append(("get_template", name))
        await self._maybe_wait()
        if name not in self.templates:
            raise TemplateNotFoundError(name)
        return self.templates[name]

    async def create_state(self, state: CMState) -> CMState:
        self.calls.append(("create", state.namespace, state.name))
        await self._maybe_wait()
        if self.create_error:
            raise self.create_error
        key = (state.namespace, state.name)
        if key in self.states:
            raise StoreWriteError(
                f"{ERROR_CREATING_CMSTATE}: {CMSTATE_PLURAL}.{CMSTATE_GROUP} "
                f'"{state.name}" already exists',
                status=409,
                reason="Conflict",
            )
        self.states[key] = state.model_copy(deep=True)
        return state

    async def patch_audience(self, state: CMState, audience: list[CMAudience]):
        self.calls.append(("patch", state.namespace, state.name))
        await self._maybe_wait()
        if self.patch_error:
            raise self.patch_error
        key = (state.namespace, state.name)
        if key not in self.states:
            raise StoreWriteError(f"{ERROR_PATCHING_CMSTATE}: not found", status=404)
        current = self.states[key]
        current.spec.audience = [member.model_copy() for member in audience]
        return current


def make_pod(
    name: str = "app-1",
    namespace: str = "ns",
    annotations: dict[str, str] | None = None,
    generate_name: str | None = None,
) -> dict[str, Any]:
    """Build a raw Pod document as the API server would submit it."""
    metadata: dict[str, Any] = {"namespace": namespace, "uid": str(uuid.uuid4())}
    if name:
        metadata["name"] = name
    if generate_name:
        metadata["generateName"] = generate_name
    if annotations is not None:
        metadata["annotations"] = annotations
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": metadata,
        "spec": {"containers": [{"name": "app", "image": "nginx:1.27"}]},
    }

