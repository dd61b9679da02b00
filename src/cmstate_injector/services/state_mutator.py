"""
CMState mutation for Pod admission.

Create path: makes sure the CMState exists and decides the annotation that
points the Pod at it. Delete path: removes the Pod from the CMState audience
with a merge patch.

Write failures surface as StoreWriteError, which the webhook answers with a
denial; the Pod operation is refused rather than left untracked.
"""

import logging

from cmstate_injector.constants import (
    AGENT_CONFIGMAP_ANNOTATION,
    AUDIENCE_KIND_POD,
    REASON_AUDIENCE_PATCHED,
    REASON_DRY_RUN_AUDIENCE,
    REASON_MISSING_CMSTATE,
    REASON_NOT_IN_AUDIENCE,
    REASON_POD_ANNOTATED,
)
from cmstate_injector.models import CMAudience, CMState, CMStateSpec, CMTemplate, Pod
from cmstate_injector.models.admission import AdmissionDecision, allow, annotate
from cmstate_injector.models.common import ResourceMetadata
from cmstate_injector.observability.metrics import metrics_collector
from cmstate_injector.utils.kubernetes import CMStateStore

from .state_resolver import ResolvedState, derive_state_name

logger = logging.getLogger(__name__)


def generate_cmstate(template: CMTemplate, pod: Pod, namespace: str) -> CMState:
    """
    Build the CMState for the first Pod consuming ``template``.

    Labels are seeded from the Pod annotations named by the template's
    annotationReplace keys; keys missing on the Pod get an empty value.

    Args:
        template: The CMTemplate referenced by the Pod
        pod: The Pod being created
        namespace: Namespace for the CMState

    Returns:
        CMState with the Pod as its only audience member
    """
    labels = {key: pod.get_annotation(key) for key in template.replace_keys}

    return CMState(
        metadata=ResourceMetadata(
            name=derive_state_name(template.name),
            namespace=namespace,
            labels=labels,
        ),
        spec=CMStateSpec(
            audience=[CMAudience(kind=AUDIENCE_KIND_POD, name=pod.identity)],
            cmtemplate=template.name,
        ),
    )


async def admit_pod_create(
    store: CMStateStore,
    pod: Pod,
    resolved: ResolvedState,
    dry_run: bool = False,
) -> AdmissionDecision:
    """
    Admit a Pod creation.

    Creates the CMState when it does not exist yet. An existing CMState is
    left untouched; in particular its audience is not extended.

    Args:
        store: Access to CMState resources
        pod: The decoded Pod
        resolved: Lookup results from the resolver
        dry_run: Skip the CMState create (the Pod is still annotated)

    Returns:
        Decision setting the agent-configmap annotation to the CMState name

    Raises:
        StoreWriteError: If creating the CMState fails
    """
    state_name = resolved.state_name

    if resolved.state is None:
        state = generate_cmstate(resolved.template, pod, resolved.namespace)
        if dry_run:
            logger.info(
                f"Dry run: not creating cmstate {resolved.namespace}/{state.name}"
            )
        else:
            created = await store.create_state(state)
            metrics_collector.record_cmstate_created(resolved.namespace)
            logger.info(
                f"Created cmstate {resolved.namespace}/{created.name} "
                f"for pod {pod.identity}",
                extra={"cmstate": created.name, "template": resolved.template.name},
            )
            state = created
        state_name = state.name

    return annotate(
        AGENT_CONFIGMAP_ANNOTATION, state_name, REASON_POD_ANNOTATED.format(state_name)
    )


async def admit_pod_delete(
    store: CMStateStore,
    pod: Pod,
    resolved: ResolvedState,
    dry_run: bool = False,
) -> AdmissionDecision:
    """
    Admit a Pod deletion, removing the Pod from the CMState audience.

    Args:
        store: Access to CMState resources
        pod: The Pod being deleted
        resolved: Lookup results from the resolver
        dry_run: Skip the audience patch

    Returns:
        Decision without annotations

    Raises:
        StoreWriteError: If patching the audience fails
    """
    state = resolved.state
    if state is None:
        return allow(REASON_MISSING_CMSTATE)

    index = state.find_audience_index(pod.identity)
    if index is None:
        logger.debug(f"Pod {pod.identity} is not in the audience of {state.name}")
        return allow(REASON_NOT_IN_AUDIENCE)

    audience = state.audience_without(index)
    if dry_run:
        logger.info(f"Dry run: not removing {pod.identity} from cmstate {state.name}")
        return allow(REASON_DRY_RUN_AUDIENCE)

    await store.patch_audience(state, audience)
    metrics_collector.record_audience_removal(resolved.namespace)
    logger.info(
        f"Removed pod {pod.identity} from cmstate {resolved.namespace}/{state.name} "
        f"({len(audience)} remaining)",
        extra={"cmstate": state.name},
    )
    return allow(REASON_AUDIENCE_PATCHED)
