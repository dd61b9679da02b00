"""
CMState Injector - A Kubernetes mutating admission webhook for CMState tracking.

The webhook links Pods that reference a CMTemplate to a shared, per-namespace
CMState resource:
- Creates the CMState lazily on the first consuming Pod
- Tracks consuming Pods in the CMState audience
- Injects the agent-configmap annotation into the Pod
"""

__version__ = "0.1.0"
