"""
Constants used throughout the CMState injector.

This module defines all constant values used by the webhook including:
- Annotation keys read from and written to Pods
- CMState / CMTemplate API coordinates
- Resource naming rules
- Webhook registration values and admission verdicts
"""

# Annotation constants (must match bit-for-bit what the cluster uses)
TEMPLATE_ANNOTATION = "cache.spices.dev/cmtemplate"
AGENT_CONFIGMAP_ANNOTATION = "vault.hashicorp.com/agent-configmap"

# Custom resource coordinates
CMSTATE_GROUP = "cache.spices.dev"
CMSTATE_VERSION = "v1alpha1"
CMSTATE_API_VERSION = f"{CMSTATE_GROUP}/{CMSTATE_VERSION}"
CMSTATE_KIND = "CMState"
CMSTATE_PLURAL = "cmstates"
CMTEMPLATE_KIND = "CMTemplate"
CMTEMPLATE_PLURAL = "cmtemplates"

# Resource naming patterns
CMSTATE_NAME_PREFIX = "cmstate-"

# Audience entry kind
AUDIENCE_KIND_POD = "Pod"

# Webhook registration (kopf serves each handler at /<handler id>)
WEBHOOK_ID = "mutate-v1-pod"
WEBHOOK_CONFIGURATION_NAME = "cmstate-operator-webhook.spices.dev"
WEBHOOK_OPERATIONS = ["CREATE", "DELETE"]

# Patch content types
MERGE_PATCH_CONTENT_TYPE = "application/merge-patch+json"

# Status codes reported for rejected admissions
STATUS_CODE_FORBIDDEN = 403
STATUS_CODE_INTERNAL_ERROR = 500

# Admission verdicts (metrics and log labels)
VERDICT_ALLOWED = "allowed"
VERDICT_PATCHED = "patched"
VERDICT_DENIED = "denied"
VERDICT_ERRORED = "errored"

# Response reasons
REASON_NO_TEMPLATE_ANNOTATION = "skipping cmstate check due to missing annotation"
REASON_UNHANDLED_OPERATION = "skipping cmstate check for unhandled operation {}"
REASON_MISSING_CMSTATE = "skipping cmstate patch due to missing cmstate"
REASON_NOT_IN_AUDIENCE = "skipping cmstate patch due to pod not in audience"
REASON_AUDIENCE_PATCHED = "cmstate has been patched, no need to mutate pod"
REASON_DRY_RUN_AUDIENCE = "skipping cmstate patch due to dry run"
REASON_POD_ANNOTATED = "pod annotated with cmstate {}"
ERROR_CREATING_CMSTATE = "creating cmstate has resulted in an error"
ERROR_PATCHING_CMSTATE = "patching cmstate has resulted in an error"
