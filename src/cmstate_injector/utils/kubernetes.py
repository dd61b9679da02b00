"""
Kubernetes utilities for the CMState injector.

This module provides helper functions for interacting with the Kubernetes API.

Key functionality:
- Kubernetes client configuration (in-cluster or kubeconfig)
- CMStateStore: CMState / CMTemplate reads and writes through the custom
  objects API, with every outcome translated to the webhook error hierarchy
"""

import asyncio
import json
import logging
from typing import Any, TypeVar

import urllib3.exceptions
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from pydantic import BaseModel, ValidationError

from cmstate_injector.constants import (
    CMSTATE_GROUP,
    CMSTATE_KIND,
    CMSTATE_PLURAL,
    CMSTATE_VERSION,
    CMTEMPLATE_KIND,
    CMTEMPLATE_PLURAL,
    ERROR_CREATING_CMSTATE,
    ERROR_PATCHING_CMSTATE,
    MERGE_PATCH_CONTENT_TYPE,
)
from cmstate_injector.errors import (
    AdmissionTimeoutError,
    StoreReadError,
    StoreWriteError,
    TemplateNotFoundError,
)
from cmstate_injector.models import CMAudience, CMState, CMTemplate
from cmstate_injector.observability.metrics import metrics_collector

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def load_kubernetes_config() -> None:
    """
    Load Kubernetes client configuration.

    Tries the in-cluster service account first (when running in a pod) and
    falls back to the local kubeconfig for development.
    """
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        try:
            config.load_kube_config()
            logger.info("Loaded kubeconfig configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise


def api_error_message(error: ApiException) -> str:
    """Extract the human-readable message from a Kubernetes API error."""
    if error.body:
        try:
            body = json.loads(error.body)
        except (TypeError, ValueError):
            body = None
        if isinstance(body, dict) and body.get("message"):
            return body["message"]
    return error.reason or f"HTTP {error.status}"


def parse_resource(model: type[M], raw: Any, description: str) -> M:
    """
    Validate a resource returned by the API server.

    Raises:
        StoreReadError: If the stored object does not match the model
    """
    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise StoreReadError(
            f"decoding {description} has resulted in an error", cause=e
        ) from e


def is_transport_timeout(error: Exception) -> bool:
    """Whether ``error`` is urllib3 giving up on a slow or silent API server."""
    if isinstance(error, urllib3.exceptions.MaxRetryError):
        return isinstance(error.reason, urllib3.exceptions.TimeoutError)
    return isinstance(error, urllib3.exceptions.TimeoutError)


class CMStateStore:
    """
    Access to CMState and CMTemplate resources.

    The kubernetes client is synchronous, so every call runs in a worker
    thread; awaiting callers can be cancelled by their deadline at any time.
    """

    def __init__(
        self,
        api: client.CustomObjectsApi | None = None,
        request_timeout: float | None = None,
    ):
        """
        Initialize the store.

        Args:
            api: Custom objects API to use (a default one is created if omitted)
            request_timeout: Per-call socket timeout passed to the client
        """
        self._api = api or client.CustomObjectsApi()
        self.request_timeout = request_timeout

    async def _call(self, method, **kwargs) -> Any:
        if self.request_timeout is not None:
            kwargs["_request_timeout"] = self.request_timeout
        try:
            return await asyncio.to_thread(method, **kwargs)
        except urllib3.exceptions.HTTPError as e:
            if is_transport_timeout(e):
                raise AdmissionTimeoutError(self.request_timeout or 0) from e
            raise

    async def get_state(self, namespace: str, name: str) -> CMState | None:
        """
        Fetch a CMState.

        Returns:
            The CMState, or None when it does not exist

        Raises:
            StoreReadError: If the lookup fails for any other reason
        """
        try:
            async with metrics_collector.track_store_call("get", CMSTATE_KIND):
                raw = await self._call(
                    self._api.get_namespaced_custom_object,
                    group=CMSTATE_GROUP,
                    version=CMSTATE_VERSION,
                    namespace=namespace,
                    plural=CMSTATE_PLURAL,
                    name=name,
                )
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"CMState {namespace}/{name} does not exist yet")
                return None
            raise StoreReadError(
                f"fetching cmstate {namespace}/{name} has resulted in an error: "
                f"{api_error_message(e)}",
                status=e.status,
            ) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreReadError(
                f"fetching cmstate {namespace}/{name} has resulted in an error",
                cause=e,
            ) from e
        return parse_resource(CMState, raw, f"cmstate {namespace}/{name}")

    async def get_template(self, name: str) -> CMTemplate:
        """
        Fetch a cluster-scoped CMTemplate.

        Raises:
            TemplateNotFoundError: If no CMTemplate has this name
            StoreReadError: If the lookup fails for any other reason
        """
        try:
            async with metrics_collector.track_store_call("get", CMTEMPLATE_KIND):
                raw = await self._call(
                    self._api.get_cluster_custom_object,
                    group=CMSTATE_GROUP,
                    version=CMSTATE_VERSION,
                    plural=CMTEMPLATE_PLURAL,
                    name=name,
                )
        except ApiException as e:
            if e.status == 404:
                raise TemplateNotFoundError(name) from e
            raise StoreReadError(
                f"fetching cmtemplate {name} has resulted in an error: "
                f"{api_error_message(e)}",
                status=e.status,
            ) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreReadError(
                f"fetching cmtemplate {name} has resulted in an error", cause=e
            ) from e
        return parse_resource(CMTemplate, raw, f"cmtemplate {name}")

    async def create_state(self, state: CMState) -> CMState:
        """
        Create a CMState.

        Raises:
            StoreWriteError: If the API rejects the create (including 409
                Conflict when a concurrent request created it first)
        """
        try:
            async with metrics_collector.track_store_call("create", CMSTATE_KIND):
                raw = await self._call(
                    self._api.create_namespaced_custom_object,
                    group=CMSTATE_GROUP,
                    version=CMSTATE_VERSION,
                    namespace=state.namespace,
                    plural=CMSTATE_PLURAL,
                    body=state.to_resource(),
                )
        except ApiException as e:
            raise StoreWriteError(
                f"{ERROR_CREATING_CMSTATE}: {api_error_message(e)}",
                status=e.status,
                reason=e.reason,
            ) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreWriteError(ERROR_CREATING_CMSTATE, cause=e) from e
        return parse_resource(CMState, raw, f"created cmstate {state.name}")

    async def patch_audience(
        self, state: CMState, audience: list[CMAudience]
    ) -> CMState:
        """
        Replace the audience of ``state`` using a JSON merge patch.

        Raises:
            StoreWriteError: If the API rejects the patch
        """
        try:
            async with metrics_collector.track_store_call("patch", CMSTATE_KIND):
                raw = await self._call(
                    self._api.patch_namespaced_custom_object,
                    group=CMSTATE_GROUP,
                    version=CMSTATE_VERSION,
                    namespace=state.namespace,
                    plural=CMSTATE_PLURAL,
                    name=state.name,
                    body=CMState.audience_patch(audience),
                    _content_type=MERGE_PATCH_CONTENT_TYPE,
                )
        except ApiException as e:
            raise StoreWriteError(
                f"{ERROR_PATCHING_CMSTATE}: {api_error_message(e)}",
                status=e.status,
                reason=e.reason,
            ) from e
        except (urllib3.exceptions.HTTPError, OSError) as e:
            raise StoreWriteError(ERROR_PATCHING_CMSTATE, cause=e) from e
        return parse_resource(CMState, raw, f"patched cmstate {state.name}")
