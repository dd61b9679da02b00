"""
Mutating admission webhook for Pods referencing a CMTemplate.

Pods carrying the cache.spices.dev/cmtemplate annotation are tracked in the
CMState derived from that template:
- CREATE: the CMState is created if needed and the Pod is annotated with
  vault.hashicorp.com/agent-configmap
- DELETE: the Pod is removed from the CMState audience

Pods without the annotation are allowed without touching the API server.
"""

import asyncio
import time
from collections.abc import Mapping
from typing import Any

import kopf
from pydantic import ValidationError

from cmstate_injector.constants import (
    REASON_NO_TEMPLATE_ANNOTATION,
    REASON_UNHANDLED_OPERATION,
    STATUS_CODE_FORBIDDEN,
    TEMPLATE_ANNOTATION,
    VERDICT_DENIED,
    VERDICT_ERRORED,
    WEBHOOK_ID,
    WEBHOOK_OPERATIONS,
)
from cmstate_injector.errors import (
    AdmissionDecodeError,
    AdmissionTimeoutError,
    CMStateInjectorError,
)
from cmstate_injector.models import AdmissionDecision, Operation, Pod
from cmstate_injector.models.admission import allow
from cmstate_injector.observability.logging import (
    AdmissionLogger,
    generate_correlation_id,
    set_correlation_id,
)
from cmstate_injector.observability.metrics import metrics_collector
from cmstate_injector.observability.tracing import admission_span, record_verdict
from cmstate_injector.services import (
    admit_pod_create,
    admit_pod_delete,
    resolve_state,
)
from cmstate_injector.settings import settings
from cmstate_injector.utils.kubernetes import CMStateStore

logger = AdmissionLogger(__name__)


def decode_pod(raw: Mapping[str, Any] | None) -> Pod:
    """
    Decode the object under admission as a Pod.

    Raises:
        AdmissionDecodeError: If there is no object, it is not a Pod, or it
            has no namespace
    """
    if not raw:
        raise AdmissionDecodeError(
            "error decoding request into Pod: there is no content to decode"
        )
    kind = raw.get("kind")
    if kind is not None and kind != "Pod":
        raise AdmissionDecodeError(
            f"error decoding request into Pod: unexpected kind {kind!r}"
        )
    try:
        pod = Pod.model_validate(dict(raw))
    except ValidationError as e:
        raise AdmissionDecodeError("error decoding request into Pod", cause=e) from e
    if not pod.namespace:
        raise AdmissionDecodeError("error decoding request into Pod: no namespace")
    return pod


def error_verdict(error: kopf.AdmissionError) -> str:
    """Classify a rejected admission for logs, metrics and traces."""
    return VERDICT_DENIED if error.code == STATUS_CODE_FORBIDDEN else VERDICT_ERRORED


async def _route(
    raw_pod: Mapping[str, Any] | None,
    operation: str | None,
    store: CMStateStore,
    dry_run: bool,
) -> AdmissionDecision:
    try:
        op = Operation(operation)
    except ValueError as e:
        raise AdmissionDecodeError(f"unknown admission operation {operation!r}") from e

    pod = decode_pod(raw_pod)
    template_name = pod.get_annotation(TEMPLATE_ANNOTATION)
    if not template_name:
        return allow(REASON_NO_TEMPLATE_ANNOTATION)

    if op is Operation.CREATE:
        resolved = await resolve_state(store, pod.namespace, template_name)
        return await admit_pod_create(store, pod, resolved, dry_run=dry_run)
    elif op is Operation.DELETE:
        resolved = await resolve_state(store, pod.namespace, template_name)
        return await admit_pod_delete(store, pod, resolved, dry_run=dry_run)
    # UPDATE and CONNECT are not registered for this webhook
    return allow(REASON_UNHANDLED_OPERATION.format(op.value))


async def handle_pod_admission(
    raw_pod: Mapping[str, Any] | None,
    operation: str | None,
    store: CMStateStore,
    timeout: float,
    dry_run: bool = False,
) -> AdmissionDecision:
    """
    Decide a Pod admission request.

    Args:
        raw_pod: The Pod under admission (oldObject for DELETE)
        operation: Admission operation (CREATE or DELETE)
        store: Access to CMState / CMTemplate resources
        timeout: Deadline in seconds for the whole decision
        dry_run: Decide without writing to the API server

    Returns:
        AdmissionDecision for an allowed request

    Raises:
        kopf.AdmissionError: Code 500 for decode and lookup failures and an
            expired deadline; code 403 for failed CMState writes
    """
    started = time.monotonic()
    operation_label = operation or "UNKNOWN"
    metadata = (raw_pod or {}).get("metadata") or {}
    namespace = metadata.get("namespace", "")
    pod_name = metadata.get("name") or metadata.get("generateName", "")
    rejection: CMStateInjectorError | None = None

    try:
        async with asyncio.timeout(timeout):
            decision = await _route(raw_pod, operation, store, dry_run)
    except TimeoutError:
        rejection = AdmissionTimeoutError(timeout)
    except CMStateInjectorError as e:
        logger.error(
            f"Admission of {operation_label} {namespace}/{pod_name} failed: {e}",
            error_type=type(e).__name__,
        )
        rejection = e

    duration = time.monotonic() - started
    if rejection is not None:
        verdict, message = rejection.verdict, str(rejection)
    else:
        verdict, message = decision.verdict, decision.reason

    metrics_collector.record_admission(operation_label, verdict, duration)
    logger.log_decision(
        operation=operation_label,
        namespace=namespace,
        pod_name=pod_name,
        verdict=verdict,
        message=message,
        duration=duration,
    )

    if rejection is not None:
        raise rejection.as_admission_error() from rejection
    return decision


@kopf.on.mutate(
    "v1",
    "pods",
    id=WEBHOOK_ID,
    operations=WEBHOOK_OPERATIONS,
    side_effects=True,
    ignore_failures=True,
)
async def mutate_pod(
    body: Mapping[str, Any],
    patch: kopf.Patch,
    operation: str | None,
    dryrun: bool,
    headers: Mapping[str, str],
    memo: kopf.Memo,
    namespace: str | None = None,
    name: str | None = None,
    **kwargs,
) -> None:
    """
    Mutate a Pod on CREATE and track its removal on DELETE.

    kopf hands DELETE requests the Pod from ``oldObject``, and turns the
    annotations set on ``patch`` into the JSON Patch of the response.

    Args:
        body: The Pod under admission
        patch: Merge patch applied to the Pod by kopf
        operation: CREATE or DELETE
        dryrun: Whether this is a dry-run request
        headers: Request headers, searched for a trace context
        memo: Operator memo holding the CMStateStore

    Raises:
        kopf.AdmissionError: If the request is denied or cannot be evaluated
    """
    set_correlation_id(generate_correlation_id())

    with admission_span(
        headers,
        operation=operation or "",
        namespace=namespace or "",
        name=name or "",
    ) as span:
        try:
            decision = await handle_pod_admission(
                body,
                operation,
                memo.store,
                settings.admission_timeout_seconds,
                dry_run=dryrun,
            )
        except kopf.AdmissionError as e:
            record_verdict(span, error_verdict(e), str(e))
            raise
        record_verdict(span, decision.verdict, decision.reason)

    for key, value in decision.annotations.items():
        patch.meta.annotations[key] = value
