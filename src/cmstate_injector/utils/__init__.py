"""
Utils package - Utility modules for CMState injector functionality.

Contains helper modules for:
- Kubernetes client configuration
- CMState / CMTemplate access through the custom objects API
"""

from cmstate_injector.utils.kubernetes import CMStateStore, load_kubernetes_config

__all__ = [
    "CMStateStore",
    "load_kubernetes_config",
]
