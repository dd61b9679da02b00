"""
CMState resolution for Pods referencing a CMTemplate.

Given a template name, derives the CMState name shared by every Pod in the
namespace that references the same template, and looks up both the existing
CMState (if any) and the template itself. Resolution never writes.
"""

import logging
from dataclasses import dataclass

from cmstate_injector.constants import CMSTATE_NAME_PREFIX
from cmstate_injector.models import CMState, CMTemplate
from cmstate_injector.utils.kubernetes import CMStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedState:
    """Lookup results for one admission request."""

    namespace: str
    state_name: str
    template: CMTemplate
    state: CMState | None = None

    @property
    def exists(self) -> bool:
        return self.state is not None


def derive_state_name(template_name: str) -> str:
    """
    Derive the CMState name for a CMTemplate.

    The name is lower-cased and underscores become hyphens, so that template
    names differing only in case or ``_``/``-`` share one CMState.

    Example:
        >>> derive_state_name("Foo_Bar")
        'cmstate-foo-bar'
    """
    return f"{CMSTATE_NAME_PREFIX}{template_name}".lower().replace("_", "-")


async def resolve_state(
    store: CMStateStore, namespace: str, template_name: str
) -> ResolvedState:
    """
    Look up the CMState and CMTemplate for a Pod.

    Args:
        store: Access to CMState / CMTemplate resources
        namespace: Namespace of the Pod (and of the CMState)
        template_name: Value of the Pod's template annotation

    Returns:
        ResolvedState; ``state`` is None when no CMState exists yet

    Raises:
        TemplateNotFoundError: If the CMTemplate does not exist
        StoreReadError: If either lookup fails otherwise
    """
    state_name = derive_state_name(template_name)

    state = await store.get_state(namespace, state_name)
    template = await store.get_template(template_name)

    logger.debug(
        f"Resolved template {template_name} to cmstate {namespace}/{state_name} "
        f"(exists: {state is not None})"
    )
    return ResolvedState(
        namespace=namespace, state_name=state_name, template=template, state=state
    )
