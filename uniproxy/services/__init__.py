"""
Dispatchable services, registered explicitly at startup.
"""
from .base import DispatchRequest, ServiceHandler
from .registry import ServiceRegistry, build_registry

__all__ = ["DispatchRequest", "ServiceHandler", "ServiceRegistry", "build_registry"]
